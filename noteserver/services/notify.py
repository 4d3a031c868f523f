"""Notify service: banner and voice notifications."""

import asyncio
from typing import Dict

from noteserver.config import Config, NotifyConfig
from noteserver.core.process import run_command
from noteserver.core.prompt import applescript_string
from noteserver.core.registry import Method, Plugin
from noteserver.errors import InvalidRequest
from noteserver.models.schemas import PostRequest, SayRequest

SAY_TIMEOUT = 300.0


class NotifyService(Plugin):
    def __init__(self):
        self.config = NotifyConfig()

    def init(self, config: Config) -> None:
        self.config = config.notify

    def methods(self) -> Dict[str, Method]:
        return {
            "Post": Method(self.post, PostRequest, "Post a notification banner"),
            "Say": Method(self.say, SayRequest, "Speak a voice notification"),
        }

    def banner_script(self, req: PostRequest) -> str:
        program = [
            f"display notification {applescript_string(req.body)}",
            f"with title {applescript_string(req.title)}",
        ]
        if req.subtitle:
            program.append(f"subtitle {applescript_string(req.subtitle)}")
        if req.audible:
            program.append(f"sound name {applescript_string(self.config.sound)}")
        return " ".join(program)

    async def post(self, req: PostRequest) -> bool:
        if not req.body and not req.title:
            raise InvalidRequest("missing notification body and title")
        script = self.banner_script(req)
        if req.after > 0:
            await asyncio.sleep(req.after)
        await run_command(["osascript"], input=script.encode("utf-8"))
        return True

    async def say(self, req: SayRequest) -> bool:
        if not req.text:
            raise InvalidRequest("empty text")
        voice = req.voice or self.config.voice
        if req.after > 0:
            await asyncio.sleep(req.after)
        await run_command(["say", "-v", voice], input=req.text.encode("utf-8"), timeout=SAY_TIMEOUT)
        return True
