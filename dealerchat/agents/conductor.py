"""
Conductor - THE BRAIN. Layered orchestrator for every inbound chat message.

CRITICAL PRINCIPLE: CHEAP LAYERS FIRST.
Each layer can answer on its own; the AI is only called when none of the
deterministic layers did. Lead alerts go out AFTER the reply is built.

Layers:
  0 abuse guard      -> canned abuse reply (source = abuse source)
  1 template matcher -> canned answer (template)
  2 entities + lead upsert
  3 objection        -> scripted rebuttal (sales_engine)
  4 intent + score
  5 handoff offer    -> hot lead, or complete lead asking for price (handoff_offer)
  6 AI               -> claude_ai, or test_mode when no provider is configured
  any error          -> fixed apology (error_fallback)
"""
import asyncio
import logging
from typing import Optional

from dealerchat.agents.objections import ObjectionHandler, personalize
from dealerchat.agents.sales_playbook import SalesPlaybook
from dealerchat.prompts.sales_assistant import PromptContext, build_system_prompt
from dealerchat.schemas.pipeline import (
    ChatResult,
    ExtractedEntities,
    LeadSnapshot,
    MessageContext,
    SenderMeta,
)
from dealerchat.services.abuse_guard import AbuseGuard
from dealerchat.services.ai import AIService
from dealerchat.services.lead_scoring import ConversationMeta, LeadData, score_lead
from dealerchat.services.lead_store import LeadStore
from dealerchat.services.notifications import LeadNotifier
from dealerchat.services.template_matcher import TemplateMatcher
from dealerchat.utils.entities import extract_entities, parse_lead_data_block
from dealerchat.utils.intent import detect_intent, detect_model_mention
from dealerchat.utils.metrics import ResponseMetrics, Timer
from dealerchat.utils.templates import (
    ERROR_FALLBACK_REPLY,
    TEST_MODE_REPLY,
    dealership_variables,
    render_template,
    render_text,
)

logger = logging.getLogger(__name__)

# A lead that became complete, with the model the visitor asked about
CompletedLead = tuple[LeadSnapshot, Optional[str]]


class Conductor:
    def __init__(
        self,
        settings,
        abuse_guard: AbuseGuard,
        template_matcher: TemplateMatcher,
        objection_handler: ObjectionHandler,
        playbook: SalesPlaybook,
        store: LeadStore,
        ai: AIService,
        notifier: Optional[LeadNotifier] = None,
        metrics: Optional[ResponseMetrics] = None,
    ):
        self.settings = settings
        self.abuse_guard = abuse_guard
        self.template_matcher = template_matcher
        self.objection_handler = objection_handler
        self.playbook = playbook
        self.store = store
        self.ai = ai
        self.notifier = notifier
        self.metrics = metrics or ResponseMetrics()
        self.variables = dealership_variables(settings)
        self._pending_notifications: set[asyncio.Task] = set()

    async def handle_message(
        self,
        conversation_id: str,
        text: str,
        sender: Optional[SenderMeta] = None,
    ) -> ChatResult:
        """Run one inbound message through the layers. Never raises."""
        timer = Timer().start()
        # Alerts survive a later layer raising
        completed: list[CompletedLead] = []
        ctx = MessageContext(
            conversation_id=conversation_id,
            text=text or "",
            sender=sender or SenderMeta(),
        )

        try:
            result = await self._run_layers(ctx, completed)
        except Exception as e:
            logger.error(
                "Chat pipeline failed for %s: %s", conversation_id[:8], str(e),
                exc_info=True, extra={"conversation_id": conversation_id},
            )
            result = self.error_fallback()

        result = result.model_copy(update={"processing_time_ms": timer.stop()})
        self.metrics.record(result.source, result.processing_time_ms, result.tokens_used)
        logger.info(
            "Reply for %s via %s in %dms", conversation_id[:8], result.source,
            result.processing_time_ms,
            extra={"conversation_id": conversation_id, "source": result.source},
        )

        self._dispatch_notifications(completed)
        return result

    def error_fallback(self) -> ChatResult:
        return ChatResult(
            success=False,
            message=render_text(ERROR_FALLBACK_REPLY, **self.variables),
            source="error_fallback",
        )

    async def _run_layers(
        self, ctx: MessageContext, completed: list[CompletedLead],
    ) -> ChatResult:
        # Layer 0: abuse
        abuse = self.abuse_guard.check(ctx.sender.address, ctx.text, ctx.conversation_id)
        ctx = ctx.model_copy(update={"abuse": abuse})
        if abuse.is_abuse:
            return await self._abuse_reply(ctx)

        # Layer 1: canned templates
        template = self.template_matcher.match(ctx.text)
        lead = await self.store.find_lead_by_conversation(ctx.conversation_id)
        ctx = ctx.model_copy(update={"template": template, "lead": lead})
        if template and self._template_applies(ctx):
            return await self._template_reply(ctx)
        if template:
            logger.info("Template %s skipped - deferring to the sales layers", template.category)

        # Layer 2: entities and lead
        ctx = await self._capture_lead(ctx, completed)

        # Layer 3: objections
        objection = self.objection_handler.handle_objection(ctx.text)
        ctx = ctx.model_copy(update={"objection": objection})
        if objection:
            return await self._objection_reply(ctx)

        # Layer 4: intent and score
        ctx = self._score(ctx)

        # Layer 5: handoff
        handoff = await self._handoff_reply(ctx)
        if handoff:
            return handoff

        # Layer 6: AI
        return await self._ai_reply(ctx, completed)

    # === LAYER 0 ===

    async def _abuse_reply(self, ctx: MessageContext) -> ChatResult:
        abuse = ctx.abuse
        message = render_template(
            abuse.source,
            category="abuse",
            minutes_remaining=abuse.block_minutes_remaining,
            **self.variables,
        )
        logger.info("Message rejected (%s): %s", abuse.source, abuse.reason)

        await self.store.append_message(
            ctx.conversation_id, "user", ctx.text,
            intent="abuse", confidence=1.0, source=abuse.source,
        )
        await self.store.append_message(
            ctx.conversation_id, "assistant", message,
            intent="abuse_response", confidence=1.0, source=abuse.source,
        )
        return ChatResult(
            message=message,
            source=abuse.source,
            block_minutes_remaining=abuse.block_minutes_remaining,
        )

    # === LAYER 1 ===

    def _template_applies(self, ctx: MessageContext) -> bool:
        category = ctx.template.category
        yielding = self.settings.template_categories_yielding_to_models
        if category in yielding and detect_model_mention(ctx.text):
            return False
        has_lead_data = bool(ctx.lead and (ctx.lead.name or ctx.lead.phone))
        if category == "contacto" and has_lead_data:
            return False
        return True

    async def _template_reply(self, ctx: MessageContext) -> ChatResult:
        template = ctx.template
        await self.store.append_message(
            ctx.conversation_id, "user", ctx.text,
            intent=template.category, confidence=template.confidence, source="user_input",
        )
        await self.store.append_message(
            ctx.conversation_id, "assistant", template.response,
            intent="template_response", confidence=template.confidence, source="template",
        )
        return ChatResult(message=template.response, source="template", category=template.category)

    # === LAYER 2 ===

    async def _capture_lead(self, ctx: MessageContext, completed: list[CompletedLead]) -> MessageContext:
        entities = extract_entities(ctx.text)
        assistant_count = await self.store.count_assistant_messages(ctx.conversation_id)
        ctx = ctx.model_copy(update={"entities": entities, "assistant_count": assistant_count})
        return await self._save_lead(ctx, entities, completed)

    async def _save_lead(
        self, ctx: MessageContext, entities: ExtractedEntities, completed: list[CompletedLead],
    ) -> MessageContext:
        if not entities.has_contact():
            return ctx
        lead, became_complete = await self.store.save_or_update_lead(ctx.conversation_id, entities)
        if lead is None:
            return ctx
        ctx = ctx.model_copy(update={"lead": lead})
        if became_complete:
            completed.append((lead, ctx.model_interest or detect_model_mention(ctx.text)))
        return ctx

    # === LAYER 3 ===

    async def _objection_reply(self, ctx: MessageContext) -> ChatResult:
        objection = ctx.objection
        message = personalize(objection.response, ctx.lead.name if ctx.lead else None)
        if objection.follow_up and ctx.assistant_count < self.settings.objection_follow_up_max_assistant_messages:
            message += f"\n\n{objection.follow_up}"

        await self.store.append_message(
            ctx.conversation_id, "user", ctx.text,
            intent=f"objection_{objection.objection_type}", confidence=0.9,
            entities=ctx.entities.as_json(), source="user_input",
        )
        await self.store.append_message(
            ctx.conversation_id, "assistant", message,
            intent="objection_handled", confidence=0.9, source="sales_engine",
        )
        return ChatResult(
            message=message,
            source="sales_engine",
            objection_type=objection.objection_type,
            lead_captured=ctx.lead_complete,
        )

    # === LAYER 4 ===

    def _score(self, ctx: MessageContext) -> MessageContext:
        intent = detect_intent(ctx.text)
        lead = ctx.lead
        score = score_lead(
            LeadData(
                name=lead.name if lead else ctx.entities.name,
                phone=lead.phone if lead else ctx.entities.phone,
                email=lead.email if lead else ctx.entities.email,
                budget=ctx.entities.budget,
            ),
            ConversationMeta(
                message_count=ctx.assistant_count,
                intents=[intent.intent] if intent.intent else [],
                model_interest=ctx.entities.model_interest or intent.model_interest,
            ),
        )
        logger.info("Lead score %d (%s) for %s", score.score, score.category, ctx.conversation_id[:8])
        return ctx.model_copy(update={"intent": intent, "score": score})

    # === LAYER 5 ===

    async def _handoff_reply(self, ctx: MessageContext) -> Optional[ChatResult]:
        if not ctx.lead_complete:
            return None

        intent = ctx.intent
        if ctx.score.category == "hot":
            promotions = self.playbook.get_active_promotions(ctx.model_interest)
            message = render_template(
                "hot",
                category="handoff",
                name=ctx.lead.name or "",
                urgency_message=promotions["urgency_message"],
                **self.variables,
            )
        elif ctx.assistant_count >= self.settings.handoff_min_assistant_messages and (
            intent.requires_premium_info or intent.intent == "cotizacion"
        ):
            message = render_template("standard", category="handoff", **self.variables)
        else:
            return None

        await self._record_user(ctx)
        await self.store.append_message(
            ctx.conversation_id, "assistant", message,
            intent="handoff_offer", confidence=0.9, source="handoff_offer",
        )
        return ChatResult(
            message=message,
            source="handoff_offer",
            can_handoff=True,
            lead_captured=True,
            lead_score=ctx.score,
        )

    # === LAYER 6 ===

    async def _ai_reply(self, ctx: MessageContext, completed: list[CompletedLead]) -> ChatResult:
        if not self.ai.is_configured:
            message = render_text(TEST_MODE_REPLY, **self.variables)
            await self._record_user(ctx)
            await self.store.append_message(
                ctx.conversation_id, "assistant", message,
                intent="test_response", confidence=0.8, source="test_mode",
            )
            return ChatResult(
                message=message,
                source="test_mode",
                lead_captured=ctx.lead_complete,
                lead_score=ctx.score,
            )

        history = await self.store.fetch_recent_history(
            ctx.conversation_id, limit=self.settings.ai_history_limit,
        )
        system_prompt = build_system_prompt(
            ctx.lead_complete, ctx.assistant_count, self._prompt_context(ctx),
        )
        response = await self.ai.generate(system_prompt, history, ctx.text)
        if response.get("error"):
            raise RuntimeError(f"AI generation failed: {response['error']}")

        tokens_used = response["input_tokens"] + response["output_tokens"]
        ai_entities, message = parse_lead_data_block(response["content"])
        entities = ctx.entities.merged(ai_entities)
        ctx = ctx.model_copy(update={"entities": entities})
        if ai_entities.has_contact():
            logger.info("AI reply carried lead data for %s", ctx.conversation_id[:8])
        ctx = await self._save_lead(ctx, entities, completed)

        await self._record_user(ctx)
        await self.store.append_message(
            ctx.conversation_id, "assistant", message,
            tokens_used=tokens_used, intent="ai_response", confidence=0.8, source="claude_ai",
        )
        logger.info(
            "AI reply: %s/%s %d tokens $%.5f", response["provider"], response["model"],
            tokens_used, response["cost_usd"], extra={"provider": response["provider"]},
        )
        return ChatResult(
            message=message,
            source="claude_ai",
            tokens_used=tokens_used,
            lead_captured=ctx.lead_complete,
            lead_score=ctx.score,
        )

    def _prompt_context(self, ctx: MessageContext) -> PromptContext:
        closing = self.playbook.get_closing_technique(
            lead_score=ctx.score.score,
            message_count=ctx.assistant_count,
            intent=ctx.intent.intent,
            model=ctx.model_interest,
        )
        suggestion = None
        if ctx.entities.budget or ctx.entities.daily_km:
            suggestion = self.playbook.suggest_model(
                budget=ctx.entities.budget, daily_km=ctx.entities.daily_km,
            )
        return PromptContext(
            assistant_name=self.settings.assistant_name,
            calculator_url=self.settings.calculator_url,
            lead_name=ctx.lead.name if ctx.lead else None,
            lead_score=ctx.score,
            model_interest=ctx.model_interest,
            days_remaining=self.playbook.days_remaining(),
            closing_technique=closing,
            suggested_model=suggestion["name"] if suggestion else None,
            capture_threshold=self.settings.lead_capture_message_threshold,
            today=self.playbook.today(),
        )

    async def _record_user(self, ctx: MessageContext) -> None:
        intent = ctx.intent
        await self.store.append_message(
            ctx.conversation_id, "user", ctx.text,
            intent=intent.intent if intent else None,
            confidence=intent.confidence if intent else 0.0,
            entities=ctx.entities.as_json(),
            source="user_input",
        )

    # === NOTIFICATIONS ===

    def _dispatch_notifications(self, completed: list[CompletedLead]) -> None:
        """Fire-and-forget lead alerts for leads completed by this message."""
        if not self.notifier:
            return
        for lead, model in completed:
            task = asyncio.create_task(self._notify(lead, model))
            self._pending_notifications.add(task)
            task.add_done_callback(self._pending_notifications.discard)

    async def _notify(self, lead: LeadSnapshot, model: Optional[str]) -> None:
        try:
            await self.notifier.notify_lead_complete(lead, model)
        except Exception as e:
            logger.error("Lead alert task failed for %s: %s", lead.id[:8], str(e))

    async def drain_notifications(self) -> None:
        """Wait for in-flight lead alerts. Used at shutdown and in tests."""
        if self._pending_notifications:
            await asyncio.gather(*self._pending_notifications, return_exceptions=True)

    def get_stats(self) -> dict:
        return {
            "responses": self.metrics.snapshot(),
            "pending_notifications": len(self._pending_notifications),
            "notifier": self.notifier.get_stats() if self.notifier else None,
        }
