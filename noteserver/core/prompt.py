"""Interactive text prompts shown to the user through osascript."""

import json

from noteserver.core.process import run_command
from noteserver.errors import DelegateError, InvalidRequest, UserCancelled
from noteserver.models.schemas import TextRequest

PROMPT_TIMEOUT = 300.0

_RETURNED = "text returned:"


def applescript_string(text: str) -> str:
    """Quote text as an AppleScript string literal."""
    # JSON escapes for quotes, backslashes and newlines are also AppleScript
    # escapes. AppleScript has no \u escape, so non-ASCII text is kept as is.
    return json.dumps(text, ensure_ascii=False)


def dialog_script(req: TextRequest) -> str:
    return "display dialog {} default answer {} hidden answer {}".format(
        applescript_string(req.prompt),
        applescript_string(req.default),
        "true" if req.hide else "false",
    )


async def prompt_for_text(req: TextRequest) -> str:
    """Ask the user for a line of text and return the answer."""
    if not req.prompt:
        raise InvalidRequest("missing prompt string")

    # "-s ho" makes osascript report errors on stdout as well as results.
    result = await run_command(
        ["osascript", "-s", "ho"],
        input=dialog_script(req).encode("utf-8"),
        timeout=PROMPT_TIMEOUT,
        check=False,
    )
    out = result.stdout.decode("utf-8", "replace").rstrip("\n")
    if not result.ok:
        if "User canceled" in out:
            raise UserCancelled("user cancelled request")
        raise DelegateError(f"prompt failed with status {result.returncode}", data={"output": out})

    i = out.find(_RETURNED)
    if i < 0:
        raise DelegateError("missing user input")
    return out[i + len(_RETURNED):]
