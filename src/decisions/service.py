"""Decision orchestration: gather inputs, run the engine, persist, learn from feedback."""

import asyncio
import uuid
from typing import Any, Awaitable, Optional, TypeVar

import structlog

from cli.retry import contention_retry
from engine import (
    FitCalculator,
    ParameterLearner,
    RegretRiskCalculator,
    ValueAlignmentCalculator,
    aggregate,
    axis_embedding_text,
    combine,
    predicted_regret,
)
from engine.models import FeedbackStats, ParameterUpdate
from engine.vectors import Vector
from observability import metrics
from shared_types import FeedbackType, ValueAxis
from values.graph import ValueGraphStore
from values.importance import ValueImportanceStore

from .models import (
    CreateDecisionCommand,
    Decision,
    DecisionError,
    DecisionExplanation,
    DecisionFeedback,
    DecisionNotFoundError,
    EmbeddingFailedError,
    FeedbackResult,
    FeedbackStatus,
    SettingsConflictError,
)
from .ports import Embedder, Explainer, FragmentSearch
from .settings import UserSettings, UserSettingsStore
from .store import DecisionStore

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_SEARCH_K = 20
DEFAULT_EMBED_TIMEOUT = 15.0
DEFAULT_READ_TIMEOUT = 5.0
DEFAULT_EXPLAIN_TIMEOUT = 60.0
DEFAULT_CAS_ATTEMPTS = 5


class _SettingsCasMiss(Exception):
    pass


class DecisionService:
    """Creates scored decisions and applies feedback.

    External reads are independent and run concurrently, each under a
    timeout. Only the option embeddings are required; every other read falls
    back to a neutral default and logs a warning.
    """

    def __init__(
        self,
        store: DecisionStore,
        settings_store: UserSettingsStore,
        importance_store: ValueImportanceStore,
        graph_store: ValueGraphStore,
        embedder: Embedder,
        search: FragmentSearch,
        explainer: Optional[Explainer] = None,
        learner: Optional[ParameterLearner] = None,
        engine_overrides: Optional[dict[str, Any]] = None,
        search_k: int = DEFAULT_SEARCH_K,
        embed_timeout: float = DEFAULT_EMBED_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        explain_timeout: float = DEFAULT_EXPLAIN_TIMEOUT,
        cas_attempts: int = DEFAULT_CAS_ATTEMPTS,
    ):
        self.store = store
        self.settings_store = settings_store
        self.importance_store = importance_store
        self.graph_store = graph_store
        self.embedder = embedder
        self.search = search
        self.explainer = explainer
        self.learner = learner or ParameterLearner()
        self.engine_overrides = dict(engine_overrides or {})
        self.search_k = search_k
        self.embed_timeout = embed_timeout
        self.read_timeout = read_timeout
        self.explain_timeout = explain_timeout
        self.cas_attempts = cas_attempts
        self.alignment = ValueAlignmentCalculator()
        self._axis_cache: dict[ValueAxis, Vector] = {}

    # --- create ---

    async def create_decision(
        self,
        command: CreateDecisionCommand,
        include_breakdown: bool = False,
        correlation_id: Optional[str] = None,
    ) -> Decision:
        log = logger.bind(
            correlation_id=correlation_id or uuid.uuid4().hex[:12],
            user_id=command.user_id,
        )
        user_id = command.user_id

        emb_a, emb_b, evidence, axis_embeddings, importance, signals, stats, settings = await asyncio.gather(
            self._embed_option(command.option_a, "a"),
            self._embed_option(command.option_b, "b"),
            self._degradable("search", self._find_evidence(command), [], log),
            self._axis_embeddings(log),
            self._degradable(
                "importance", asyncio.to_thread(self.importance_store.read_importance, user_id), {}, log
            ),
            self._degradable("value_graph", asyncio.to_thread(self.graph_store.read_signals, user_id), {}, log),
            self._degradable("feedback_stats", asyncio.to_thread(self.store.feedback_stats, user_id),
                             FeedbackStats(), log),
            self._degradable("settings", asyncio.to_thread(self.settings_store.get, user_id),
                             UserSettings(user_id=user_id), log),
        )

        with metrics.timer("decision.compute"):
            params = settings.to_parameters(**self.engine_overrides)
            priority_embedding = None
            if command.priority_axis is not None:
                priority_embedding = axis_embeddings.get(command.priority_axis)

            fit = FitCalculator(params.priority_axis_boost).calculate(
                emb_a, emb_b, evidence, priority_embedding
            )
            regret = RegretRiskCalculator(params.volatility_weight, params.negativity_weight).calculate(
                evidence, params.baseline_regret_rate, emb_a, emb_b, stats
            )
            alignment = self.alignment.calculate(emb_a, emb_b, axis_embeddings, importance, signals)
            breakdown = aggregate(fit, regret, params) if include_breakdown else None
            result = combine(
                fit, regret, params.sensitivity_weight, fit.evidence_ids(), alignment, breakdown
            )

        decision = Decision.from_command(command, result)
        await asyncio.to_thread(self.store.save, decision)
        metrics.counter("decisions.created")
        log.info(
            "decision.created",
            decision_id=decision.id,
            evidence=len(evidence),
            probability_a=round(result.probability_a, 4),
            feedback_count=stats.total_with_feedback,
        )
        return decision

    async def _embed_option(self, text: str, label: str) -> Vector:
        try:
            return await asyncio.wait_for(self.embedder.embed(text), timeout=self.embed_timeout)
        except Exception as e:
            raise EmbeddingFailedError(f"Failed to embed option {label.upper()}: {str(e) or type(e).__name__}") from e

    async def _find_evidence(self, command: CreateDecisionCommand):
        context = await self.embedder.embed(command.context_text())
        return await self.search.search(command.user_id, context, self.search_k)

    async def _axis_embeddings(self, log) -> dict[ValueAxis, Vector]:
        """Axis vectors, embedded once per service and cached. Failed axes are left out."""
        missing = [axis for axis in ValueAxis if axis not in self._axis_cache]
        if missing:
            vectors = await asyncio.gather(
                *(
                    self._degradable(
                        "axis_embedding", self.embedder.embed(axis_embedding_text(axis)), None, log
                    )
                    for axis in missing
                )
            )
            for axis, vector in zip(missing, vectors):
                if vector is not None:
                    self._axis_cache[axis] = vector
        return dict(self._axis_cache)

    async def _degradable(self, name: str, call: Awaitable[T], default: T, log) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.read_timeout)
        except Exception as e:
            metrics.counter(f"gateway.degraded.{name}")
            log.warning("gateway.degraded", gateway=name, error=str(e) or type(e).__name__)
            return default

    # --- feedback ---

    async def submit_feedback(
        self,
        user_id: str,
        decision_id: str,
        feedback_type: FeedbackType,
        correlation_id: Optional[str] = None,
    ) -> FeedbackResult:
        log = logger.bind(
            correlation_id=correlation_id or uuid.uuid4().hex[:12],
            user_id=user_id,
            decision_id=decision_id,
        )
        decision = await asyncio.to_thread(self.store.get_for_user, user_id, decision_id)
        if decision is None:
            log.info("feedback.not_found")
            return FeedbackResult(status=FeedbackStatus.NOT_FOUND)

        existing = await asyncio.to_thread(self.store.get_feedback, decision_id)
        if existing is not None:
            return self._conflict(log, existing)

        feedback = DecisionFeedback(decision_id=decision_id, user_id=user_id, feedback_type=feedback_type)
        if not await asyncio.to_thread(self.store.save_feedback, feedback):
            existing = await asyncio.to_thread(self.store.get_feedback, decision_id)
            return self._conflict(log, existing)

        stats = await asyncio.to_thread(self.store.feedback_stats, user_id)
        update = await asyncio.to_thread(self._learn, decision, stats, feedback_type)

        metrics.counter("feedback.accepted")
        log.info(
            "feedback.accepted",
            feedback_type=feedback_type.value,
            sensitivity=round(update.sensitivity_after, 4),
            baseline=round(update.baseline_after, 4),
        )
        return FeedbackResult(status=FeedbackStatus.ACCEPTED, feedback=feedback, stats=stats, update=update)

    async def replay_pending_learning(self, user_id: str) -> list[ParameterUpdate]:
        """Apply the learner for feedback that was saved but never learned from.

        Feedback is committed before the settings update, so a run that exhausts
        its CAS attempts leaves the feedback without a parameter update. Replays
        run oldest first against the current feedback stats. A settings conflict
        stops the replay; whatever is left stays pending.
        """
        pending = await asyncio.to_thread(self.store.feedback_without_update, user_id)
        if not pending:
            return []
        stats = await asyncio.to_thread(self.store.feedback_stats, user_id)
        updates = []
        for feedback in pending:
            decision = await asyncio.to_thread(self.store.get_for_user, user_id, feedback.decision_id)
            if decision is None:
                logger.warning("feedback.replay_orphan", user_id=user_id, decision_id=feedback.decision_id)
                continue
            updates.append(await asyncio.to_thread(self._learn, decision, stats, feedback.feedback_type))
        metrics.counter("feedback.replayed", len(updates))
        logger.info("feedback.replayed", user_id=user_id, count=len(updates))
        return updates

    def _learn(self, decision: Decision, stats: FeedbackStats, feedback_type: FeedbackType) -> ParameterUpdate:
        result = decision.result
        predicted = predicted_regret(
            result.probability_a, result.probability_b, result.regret_risk_a, result.regret_risk_b
        )
        update = self._apply_learner(decision.user_id, decision.id, stats, feedback_type, predicted)
        self.store.save_parameter_update(update)
        return update

    def _conflict(self, log, existing: Optional[DecisionFeedback]) -> FeedbackResult:
        metrics.counter("feedback.conflict")
        log.info("feedback.conflict")
        return FeedbackResult(status=FeedbackStatus.CONFLICT, feedback=existing)

    def _apply_learner(
        self,
        user_id: str,
        decision_id: str,
        stats: FeedbackStats,
        feedback_type: FeedbackType,
        predicted: float,
    ) -> ParameterUpdate:
        """Read-learn-write on the settings row, retried while another writer wins the CAS."""

        @contention_retry(max_attempts=self.cas_attempts, exceptions=(_SettingsCasMiss,))
        def attempt() -> ParameterUpdate:
            settings = self.settings_store.get(user_id)
            update = self.learner.learn(
                user_id=user_id,
                decision_id=decision_id,
                sensitivity_weight=settings.sensitivity_weight,
                baseline_regret_rate=settings.baseline_regret_rate,
                stats=stats,
                feedback_type=feedback_type,
                predicted=predicted,
            )
            if not self.settings_store.compare_and_swap(
                user_id, settings.version, update.sensitivity_after, update.baseline_after
            ):
                logger.info("settings.cas_retry", user_id=user_id, version=settings.version)
                raise _SettingsCasMiss(user_id)
            return update

        try:
            return attempt()
        except _SettingsCasMiss as e:
            raise SettingsConflictError(
                f"Settings for {user_id} changed concurrently {self.cas_attempts} times"
            ) from e

    # --- explanation ---

    async def explain_decision(
        self,
        user_id: str,
        decision_id: str,
        correlation_id: Optional[str] = None,
    ) -> DecisionExplanation:
        """Cached explanation, generating and caching one on first request.

        Template fallbacks are returned but never cached, so a later call asks
        the model again.
        """
        log = logger.bind(correlation_id=correlation_id or uuid.uuid4().hex[:12], decision_id=decision_id)
        decision = await asyncio.to_thread(self.store.get_for_user, user_id, decision_id)
        if decision is None:
            raise DecisionNotFoundError(f"Decision not found: {decision_id}")
        if decision.explanation is not None and not decision.explanation.is_fallback:
            return decision.explanation
        if self.explainer is None:
            raise DecisionError("No explainer configured")

        evidence_ids = list(decision.result.evidence_ids)
        texts = await self._degradable(
            "evidence_texts", self.search.get_texts(user_id, evidence_ids), {}, log
        )
        explanation = await asyncio.wait_for(
            self.explainer.explain(decision, [texts[i] for i in evidence_ids if i in texts]),
            timeout=self.explain_timeout,
        )
        if explanation.is_fallback:
            log.warning("decision.explanation_fallback")
            return explanation
        await asyncio.to_thread(self.store.attach_explanation, decision_id, explanation)
        log.info("decision.explained")
        return explanation
