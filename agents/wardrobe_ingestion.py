"""Wardrobe ingestion agent for turning photos into stored wardrobe items."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from closet_app.logging_config import get_logger, log_event, operation_context
from logic.analysis_reconciler import AnalysisReconciler, NormalizedTags
from logic.form_state import ApplySuggestions, ItemFormState, SetField, reduce_form
from logic.mutation_dispatcher import MutationDispatcher
from logic.upload_coordinator import AssetUploadCoordinator
from models.filename_heuristics import infer_from_filename
from models.image_file import MAX_IMAGE_BYTES, ImageFile, validate_image_file
from models.tag_mapping import MappedFields, map_tags

logger = get_logger(__name__)


@dataclass(frozen=True)
class IngestionDraft:
    """Everything prepared for one photo, handed back to the caller to submit."""

    image_url: str
    form: ItemFormState
    suggestions: MappedFields
    analysis: Optional[NormalizedTags] = None

    @property
    def used_heuristic(self) -> bool:
        return self.analysis is None


class WardrobeIngestionAgent:
    """Runs photo upload, analysis, field mapping and the final create."""

    def __init__(
        self,
        uploader: AssetUploadCoordinator,
        reconciler: AnalysisReconciler,
        dispatcher: MutationDispatcher,
        max_image_bytes: int = MAX_IMAGE_BYTES,
    ) -> None:
        self.uploader = uploader
        self.reconciler = reconciler
        self.dispatcher = dispatcher
        self.max_image_bytes = max_image_bytes

    def prepare(self, image: ImageFile, form: ItemFormState | None = None) -> IngestionDraft:
        """Upload and analyze a photo, merging suggestions under the user's edits.

        Raises:
            ValueError: If the file is not an acceptable image.
            UploadError: If neither upload path accepted the photo.
        """

        validate_image_file(image, self.max_image_bytes)
        with operation_context("agent:wardrobe_ingestion.prepare") as correlation_id:
            image_url = self.uploader.upload(image)
            analysis = self.reconciler.analyze(image)
            if analysis is None:
                suggestions = infer_from_filename(image.name)
            else:
                suggestions = map_tags(analysis.tags, analysis.labels)

            state = form or ItemFormState()
            state = reduce_form(state, ApplySuggestions(suggestions.as_suggestions()))
            if "image_path" not in state.edited:
                state = reduce_form(state, SetField("image_path", image_url))

            log_event(
                logger,
                logging.INFO,
                "agent_call_completed",
                agent="wardrobe_ingestion",
                method="prepare",
                correlation_id=correlation_id,
                used_heuristic=analysis is None,
                category=state.category or None,
            )
            return IngestionDraft(image_url=image_url, form=state, suggestions=suggestions, analysis=analysis)

    def submit(self, draft: IngestionDraft, idempotency_key: Optional[str] = None) -> Dict[str, Any]:
        """Persist a prepared draft. Raises ``MutationError`` on failure."""

        payload = draft.form.to_payload()
        if draft.analysis is not None:
            payload.setdefault("metadata", {})["analysis"] = draft.analysis.providers
        return self.dispatcher.create(payload, idempotency_key=idempotency_key)

    def ingest(
        self,
        image: ImageFile,
        form: ItemFormState | None = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self.submit(self.prepare(image, form), idempotency_key=idempotency_key)


__all__ = ["IngestionDraft", "WardrobeIngestionAgent"]
