"""Agent core: prompt assembly, reply generation and the message controller."""

from nanothread.agent.controller import MessageController
from nanothread.agent.prompt import PromptAssembler
from nanothread.agent.reply import MathRenderer, ReplyResult, ReplyService

__all__ = ["MessageController", "PromptAssembler", "ReplyService", "ReplyResult", "MathRenderer"]
