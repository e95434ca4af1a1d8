# FILE: patchpath/refinement/orchestrator.py
"""
Refinement Orchestrator: the top-level state machine.

    Start -> Classifying -> Clarifying                              (terminal, no mutation)
                         -> CheckingFeasibility -> Rejected         (terminal, no mutation)
                                                -> Mapping -> Validating -> Rejected   (no mutation)
                                                                        -> Applying -> Committed

Session commands resolved by Tier 0 (undo / start fresh / save) short-circuit
to their handlers, which are also callable directly.

Concurrency:
- One refinement per session at a time inside this process (SessionLockRegistry).
- Writes carry the version read at the start. On SessionConflict the session
  is re-read and mapping/validation re-run with the feedback already
  classified (no second oracle call), up to `commit_retries` times.
- The store is touched only at the start (read) and at commit (write);
  nothing is held open across the oracle call.

Only SessionStoreUnavailable escapes. Everything else ends as a
RefinementResult with a non-empty message.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from config.categories import CATEGORY_VOCABULARY, CategorySpec
from config.settings import RefinementSettings, get_settings
from patchpath.patches import Patch, utcnow
from patchpath.sessions import (
    MessageRole,
    Session,
    SessionConflict,
    SessionLockRegistry,
    SessionNotFound,
    SessionStore,
    SessionStoreUnavailable,
)

from . import messages
from .apply import apply_modification
from .classifier import FeedbackClassifier
from .gates import check_clarification_gate, check_feasibility_gate
from .history import PatchHistory
from .mapper import ModificationMapper
from .schemas import (
    ParsedFeedback,
    RefinementResult,
    RefinementStage,
    SessionCommand,
)
from .special_intents import generate_patch_name, generate_save_confirmation
from .validator import validate_modification, validate_patch_against_rack

logger = logging.getLogger(__name__)

# compute(session) -> (changes to write or None, result to return)
CommitPlan = Tuple[Optional[Dict[str, Any]], RefinementResult]


def _result(stage: RefinementStage, message: str, success: bool = False, **extra: Any) -> RefinementResult:
    return RefinementResult(success=success, stage=stage, message=message, **extra)


class RefinementOrchestrator:
    """
    Usage:
        orchestrator = RefinementOrchestrator(store)
        result = await orchestrator.refine(session_id, "make it darker")
    """

    def __init__(
        self,
        store: SessionStore,
        classifier: Optional[FeedbackClassifier] = None,
        mapper: Optional[ModificationMapper] = None,
        locks: Optional[SessionLockRegistry] = None,
        settings: Optional[RefinementSettings] = None,
        vocabulary: Optional[Dict[str, CategorySpec]] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.vocabulary = vocabulary if vocabulary is not None else CATEGORY_VOCABULARY
        self.classifier = classifier or FeedbackClassifier(vocabulary=self.vocabulary)
        self.mapper = mapper or ModificationMapper(vocabulary=self.vocabulary)
        self.locks = locks or SessionLockRegistry()

    # =========================================================================
    # REFINE
    # =========================================================================

    async def refine(self, session_id: str, feedback_text: str) -> RefinementResult:
        logger.info(f"[refine] {session_id}: {feedback_text[:50]!r}")
        async with self.locks.hold(session_id):
            session = await self.store.get(session_id)
            if session is None:
                return _result(RefinementStage.FAILED, messages.SESSION_EXPIRED_MESSAGE)
            try:
                return await self._refine_locked(session, feedback_text)
            except SessionStoreUnavailable:
                raise
            except Exception as e:
                logger.exception(f"[refine] {session_id}: unexpected failure: {e}")
                return _result(RefinementStage.FAILED, messages.GENERIC_ERROR_MESSAGE)

    async def _refine_locked(self, session: Session, feedback_text: str) -> RefinementResult:
        # Classifying
        feedback = await self.classifier.classify(feedback_text, session)
        logger.debug(
            f"[refine] classified via {feedback.latency_tier.value}: intent={feedback.intent.value} "
            f"target={feedback.target!r} confidence={feedback.confidence}"
        )

        if feedback.command is not None:
            return await self._run_command(feedback.command, session, feedback)

        # Clarifying
        gate = check_clarification_gate(feedback, feedback_text, self.settings.clarify_threshold)
        if not gate.passed:
            return _result(
                RefinementStage.CLARIFYING,
                gate.question or messages.GENERIC_CLARIFICATION,
                needs_clarification=True,
                feedback=feedback,
            )

        missing = self._missing_prerequisite(session, feedback)
        if missing is not None:
            return missing

        # CheckingFeasibility
        feasibility = check_feasibility_gate(feedback, session.rack_snapshot, self.vocabulary)
        if not feasibility.passed:
            return _result(
                RefinementStage.REJECTED,
                messages.impossible_request_message(feasibility.reason),
                impossible_request=True,
                impossible_reason=feasibility.reason,
                feedback=feedback,
            )

        # Mapping -> Validating -> Applying -> Committed
        return await self._commit(session, lambda s: self._plan_refinement(s, feedback))

    def _missing_prerequisite(self, session: Session, feedback: ParsedFeedback) -> Optional[RefinementResult]:
        if session.current_patch is None:
            return _result(RefinementStage.REJECTED, messages.NO_PATCH_MESSAGE, feedback=feedback)
        if session.rack_snapshot is None:
            return _result(RefinementStage.REJECTED, messages.NO_RACK_MESSAGE, feedback=feedback)
        return None

    def _plan_refinement(self, session: Session, feedback: ParsedFeedback) -> CommitPlan:
        missing = self._missing_prerequisite(session, feedback)
        if missing is not None:
            return None, missing

        patch = session.current_patch
        rack = session.rack_snapshot

        modification = self.mapper.map(feedback, patch, rack)

        report = validate_modification(modification, patch, rack)
        if not report.valid:
            logger.error(
                f"[refine] {session.session_id}: mapped modification failed validation "
                f"({len(report.issues)} issues): {report.issues}; modification={modification.model_dump(by_alias=True)}"
            )
            return None, _result(
                RefinementStage.REJECTED,
                messages.VALIDATION_FAILED_MESSAGE,
                feedback=feedback,
                modification=modification,
                validation_issues=report.issues,
            )

        updated = apply_modification(patch, modification)
        history = PatchHistory.from_session(session, self.settings.history_capacity)
        evicted = history.push(updated)
        if evicted is not None:
            logger.debug(f"[refine] {session.session_id}: history full, evicted {evicted.id}")

        changes = {
            "current_patch": history.current,
            "patch_history": history.snapshots,
            "applied_modifications": [*session.applied_modifications, modification],
        }
        return changes, _result(
            RefinementStage.COMMITTED,
            messages.committed_message(modification),
            success=True,
            updated_patch=updated,
            modification=modification,
            feedback=feedback,
        )

    # =========================================================================
    # COMMIT (optimistic, retried)
    # =========================================================================

    async def _commit(self, session: Session, plan: Callable[[Session], CommitPlan]) -> RefinementResult:
        attempts = self.settings.commit_retries + 1
        for attempt in range(1, attempts + 1):
            changes, result = plan(session)
            if changes is None:
                return result
            try:
                await self.store.update(session.session_id, changes, expected_version=session.version)
            except SessionNotFound:
                logger.warning(f"[refine] {session.session_id}: session vanished before commit")
                return _result(RefinementStage.FAILED, messages.SESSION_EXPIRED_MESSAGE)
            except SessionConflict as e:
                logger.warning(f"[refine] {session.session_id}: {e} (attempt {attempt}/{attempts})")
                fresh = await self.store.get(session.session_id)
                if fresh is None:
                    return _result(RefinementStage.FAILED, messages.SESSION_EXPIRED_MESSAGE)
                session = fresh
                continue
            logger.info(f"[refine] {session.session_id}: {result.stage.value} - {result.message.splitlines()[0]}")
            return result

        logger.error(f"[refine] {session.session_id}: gave up after {attempts} conflicting commits")
        return _result(RefinementStage.FAILED, messages.CONFLICT_MESSAGE)

    # =========================================================================
    # COMMANDS
    # =========================================================================

    async def _run_command(
        self,
        command: SessionCommand,
        session: Session,
        feedback: Optional[ParsedFeedback] = None,
    ) -> RefinementResult:
        logger.info(f"[refine] {session.session_id}: command {command.value}")
        if command == SessionCommand.UNDO:
            plan = self._plan_undo
        elif command == SessionCommand.START_FRESH:
            plan = self._plan_start_fresh
        else:
            plan = self._plan_save
        result = await self._commit(session, plan)
        if feedback is not None and result.feedback is None:
            result.feedback = feedback
        return result

    async def _locked_command(self, session_id: str, command: SessionCommand) -> RefinementResult:
        async with self.locks.hold(session_id):
            session = await self.store.get(session_id)
            if session is None:
                return _result(RefinementStage.FAILED, messages.SESSION_EXPIRED_MESSAGE)
            return await self._run_command(command, session)

    async def undo(self, session_id: str) -> RefinementResult:
        return await self._locked_command(session_id, SessionCommand.UNDO)

    async def start_fresh(self, session_id: str) -> RefinementResult:
        return await self._locked_command(session_id, SessionCommand.START_FRESH)

    async def save(self, session_id: str) -> RefinementResult:
        return await self._locked_command(session_id, SessionCommand.SAVE)

    def _plan_undo(self, session: Session) -> CommitPlan:
        history = PatchHistory.from_session(session, self.settings.history_capacity)
        restored = history.undo()
        if restored is None:
            return None, _result(RefinementStage.COMMAND, messages.NOTHING_TO_UNDO_MESSAGE, command=SessionCommand.UNDO)
        changes = {"current_patch": restored, "patch_history": history.snapshots}
        return changes, _result(
            RefinementStage.COMMAND,
            messages.undo_message(restored),
            success=True,
            updated_patch=restored,
            command=SessionCommand.UNDO,
        )

    def _plan_start_fresh(self, session: Session) -> CommitPlan:
        history = PatchHistory.from_session(session, self.settings.history_capacity)
        history.clear()
        changes = {
            "current_patch": None,
            "patch_history": history.snapshots,
            "applied_modifications": [],
        }
        return changes, _result(
            RefinementStage.COMMAND,
            messages.START_FRESH_MESSAGE,
            success=True,
            command=SessionCommand.START_FRESH,
        )

    def _plan_save(self, session: Session) -> CommitPlan:
        patch = session.current_patch
        if patch is None:
            return None, _result(RefinementStage.COMMAND, messages.NO_PATCH_MESSAGE, command=SessionCommand.SAVE)

        if patch.saved:
            name = patch.metadata.title
        else:
            conversation = [m.content for m in session.messages if m.role == MessageRole.USER]
            name = generate_patch_name(patch.metadata.title, session.applied_modifications, conversation)
        saved = patch.model_copy(deep=True)
        saved.metadata.title = name
        saved.saved = True
        saved.updated_at = utcnow()

        return {"current_patch": saved}, _result(
            RefinementStage.COMMAND,
            generate_save_confirmation(name, session.applied_modifications),
            success=True,
            updated_patch=saved,
            command=SessionCommand.SAVE,
        )

    # =========================================================================
    # GENERATED PATCHES
    # =========================================================================

    async def commit_generated_patch(self, session_id: str, patch: Patch) -> RefinementResult:
        """Adopt a freshly generated patch as current (previous one goes on the undo stack)."""
        async with self.locks.hold(session_id):
            session = await self.store.get(session_id)
            if session is None:
                return _result(RefinementStage.FAILED, messages.SESSION_EXPIRED_MESSAGE)
            return await self._commit(session, lambda s: self._plan_adopt(s, patch))

    def _plan_adopt(self, session: Session, patch: Patch) -> CommitPlan:
        if session.rack_snapshot is None:
            return None, _result(RefinementStage.REJECTED, messages.NO_RACK_MESSAGE)

        report = validate_patch_against_rack(patch, session.rack_snapshot)
        if not report.valid:
            logger.error(
                f"[refine] {session.session_id}: generated patch {patch.id} references unknown modules: "
                f"{report.issues}"
            )
            return None, _result(
                RefinementStage.REJECTED,
                messages.VALIDATION_FAILED_MESSAGE,
                validation_issues=report.issues,
            )

        history = PatchHistory.from_session(session, self.settings.history_capacity)
        history.push(patch)
        changes = {"current_patch": history.current, "patch_history": history.snapshots}
        return changes, _result(
            RefinementStage.COMMITTED,
            messages.generated_patch_message(patch),
            success=True,
            updated_patch=patch,
        )
