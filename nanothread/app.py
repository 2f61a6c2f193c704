"""Wire the agent core together from settings."""

from typing import Optional

import httpx
from loguru import logger

from nanothread.agent.controller import MessageController
from nanothread.agent.prompt import PromptAssembler
from nanothread.agent.reply import MathRenderer, ReplyService
from nanothread.channels.base import PlatformClient
from nanothread.config.loader import load_persona, load_settings
from nanothread.config.schema import Settings
from nanothread.config.scopes import ScopeConfigStore
from nanothread.extract import ContentExtractor
from nanothread.memory.store import CLONE_NAMESPACE, USER_NAMESPACE, MemoryStore
from nanothread.providers.base import LLMProvider
from nanothread.providers.litellm_provider import LiteLLMProvider
from nanothread.session.store import SessionStore
from nanothread.storage.crypto import Cipher
from nanothread.storage.persistence import EncryptedStore
from nanothread.utils.logging import configure_logging


def create_controller(
    client: PlatformClient,
    settings: Optional[Settings] = None,
    provider: Optional[LLMProvider] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    renderer: Optional[MathRenderer] = None,
    setup_logging: bool = False,
) -> MessageController:
    """
    Build a ``MessageController`` and everything it depends on.

    Args:
        client: Platform gateway adapter.
        settings: Settings to use; read from the environment when omitted.
        provider: Model provider; a ``LiteLLMProvider`` for the active model
            when omitted.
        http_client: Client for content extraction; created with the
            configured timeout when omitted.
        renderer: Optional formula renderer.
        setup_logging: Install the console and file log sinks.

    Raises:
        ConfigurationError: A required secret is missing or the persona file
            is malformed.
    """
    settings = settings.require_secrets() if settings is not None else load_settings()
    if setup_logging:
        configure_logging(settings.log_level)

    persona = load_persona(settings.persona_file)
    configs = ScopeConfigStore(settings.scope_config_file)
    configs.load()

    persistence = EncryptedStore(settings.data_dir, Cipher(settings.encryption_key_base))
    session = SessionStore(configs, persistence, message_limit=settings.thread_message_limit)

    provider = provider or LiteLLMProvider(
        api_key=settings.model_api_key,
        api_base=settings.model_api_base,
        default_model=settings.active_model,
    )
    http_client = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds, follow_redirects=True)
    allow_inline = not settings.use_fine_tuned_model

    controller = MessageController(
        client=client,
        session=session,
        extractor=ContentExtractor(
            http_client,
            tenor_api_key=settings.tenor_api_key,
            giphy_api_key=settings.giphy_api_key,
            allow_inline=allow_inline,
        ),
        assembler=PromptAssembler(max_memory_entries=settings.max_memory_entries),
        replies=ReplyService(
            provider,
            model=settings.active_model,
            fine_tuned=settings.use_fine_tuned_model,
            renderer=renderer,
        ),
        user_memory=MemoryStore(persistence, USER_NAMESPACE, budget=settings.memory_budget_chars),
        clone_memory=MemoryStore(persistence, CLONE_NAMESPACE, budget=settings.memory_budget_chars),
        persona=persona,
        use_persona=settings.use_persona,
        clone_user_id=settings.clone_user_id,
    )
    logger.info(f"Message controller ready (model={settings.active_model}, inline_media={allow_inline})")
    return controller
