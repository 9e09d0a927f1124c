"""Closet app bootstrap."""

import logging
from typing import List, Optional, Sequence

from fastapi import FastAPI
from supabase import Client, create_client

from agents.wardrobe_ingestion import WardrobeIngestionAgent
from closet_app.config import ClosetConfig
from closet_app.logging_config import configure_logging, get_logger, log_event
from logic.analysis_reconciler import AnalysisReconciler
from logic.mutation_dispatcher import MutationDispatcher
from logic.upload_coordinator import AssetUploadCoordinator
from memory.analysis_cache import JSONAnalysisCacheStore
from memory.item_collection import ItemCollection
from server.api import create_app
from tools.auth_session import (
    AuthSession,
    StaticAuthSession,
    SupabaseAuthSession,
    static_token_verifier,
    supabase_token_verifier,
)
from tools.gemini_tagger import GeminiImageTagger
from tools.object_storage import LocalObjectStorage, ObjectStorage, SupabaseObjectStorage
from tools.remote_store import SQLiteWardrobeTable, SupabaseWardrobeTable, WardrobeTable
from tools.trusted_api import TrustedApiClient
from tools.vision_providers import ClothesFinderProvider, TagProvider, VisionLabelProvider

LOGGER = get_logger(__name__)


def _supabase_client(config: ClosetConfig, key: Optional[str]) -> Client:
    if not config.supabase_url or not key:
        raise ValueError("SUPABASE_URL and a Supabase key are required for the supabase backend")
    return create_client(config.supabase_url, key)


def _build_backend(config: ClosetConfig, client: Optional[Client]) -> tuple[WardrobeTable, ObjectStorage]:
    if client is not None:
        return (
            SupabaseWardrobeTable(client, config.items_table),
            SupabaseObjectStorage(client, config.storage_bucket),
        )
    return (
        SQLiteWardrobeTable(config.local_db_path),
        LocalObjectStorage(config.local_storage_dir, config.local_storage_base_url),
    )


class ClosetApp:
    """Wires the client-side pipeline: upload, analysis and item writes."""

    def __init__(
        self,
        config: ClosetConfig | None = None,
        session: AuthSession | None = None,
        providers: Sequence[TagProvider] | None = None,
    ) -> None:
        self.config = config or ClosetConfig.from_env()
        configure_logging()

        client = None
        if self.config.backend == "supabase":
            client = _supabase_client(self.config, self.config.supabase_anon_key)
        self.table, self.storage = _build_backend(self.config, client)
        if session is not None:
            self.session = session
        elif client is not None:
            self.session = SupabaseAuthSession(client)
        else:
            self.session = StaticAuthSession(self.config.local_user_id, self.config.local_access_token)

        timeout = self.config.request_timeout_seconds
        self.trusted_api = TrustedApiClient(self.config.api_base_url, self.session, timeout)
        self.providers: List[TagProvider] = list(
            providers
            if providers is not None
            else [
                ClothesFinderProvider(self.config.api_base_url, self.session, timeout),
                VisionLabelProvider(self.config.api_base_url, self.session, timeout),
            ]
        )
        self.analysis_cache = JSONAnalysisCacheStore(
            self.config.analysis_cache_path, max_entries=self.config.analysis_cache_max_entries
        )
        self.collection = ItemCollection()
        self.uploader = AssetUploadCoordinator(self.storage, self.trusted_api, self.session)
        self.reconciler = AnalysisReconciler(
            self.providers, self.analysis_cache, ttl_seconds=self.config.analysis_cache_ttl_seconds
        )
        self.dispatcher = MutationDispatcher(
            self.table,
            self.trusted_api,
            self.session,
            collection=self.collection,
            upload_coordinator=self.uploader,
        )
        self.ingestion = WardrobeIngestionAgent(
            self.uploader,
            self.reconciler,
            self.dispatcher,
            max_image_bytes=self.config.max_upload_bytes,
        )
        log_event(
            LOGGER,
            logging.INFO,
            "closet_app_ready",
            backend=self.config.backend,
            providers=[provider.name for provider in self.providers],
        )

    def load_items(self) -> int:
        """Replace the in-memory collection with the signed-in user's items."""

        user = self.session.current_user
        if not user:
            self.collection.reset([])
            return 0
        self.collection.reset(self.table.list_for_user(user.id))
        return len(self.collection)


def build_server_app(config: ClosetConfig | None = None) -> FastAPI:
    """Build the trusted server with elevated-trust backends."""

    config = config or ClosetConfig.from_env()
    configure_logging()
    client = None
    if config.backend == "supabase":
        client = _supabase_client(config, config.supabase_service_key)
    table, storage = _build_backend(config, client)
    if client is not None:
        verify_token = supabase_token_verifier(client)
    else:
        verify_token = static_token_verifier({config.local_access_token: config.local_user_id})
    tagger = (
        GeminiImageTagger(config.gemini_api_key, config.gemini_model) if config.gemini_api_key else None
    )
    if tagger is None:
        LOGGER.warning("GEMINI_API_KEY not set; /api/clothes-finder will answer 503")
    return create_app(
        table,
        storage,
        verify_token,
        tagger=tagger,
        max_upload_bytes=config.max_upload_bytes,
        environment=config.environment,
    )


__all__ = ["ClosetApp", "build_server_app"]
