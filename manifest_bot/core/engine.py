"""
Single entry point for inbound chat events.

The engine serialises turns per identity, runs the right workflow inside one
unit of work, maps core errors to replies and finally runs the after-commit
side effects outside the lock.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

import structlog

from manifest_bot.models import AdminState, IntakeState, User, UserRole

from . import texts
from .admin import AdminWorkflow
from .effects import AfterCommit
from .errors import InvalidTransition, NotFound, ValidationError
from .events import IntakeEvent, Renderable, TelegramId, WhatsAppId
from .intake import IntakeStateMachine
from .interfaces import UnitOfWork, UnitOfWorkFactory
from .locks import KeyedLock
from .parsing import looks_like_phone, normalize_phone

logger = structlog.get_logger()


class ConversationEngine:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        intake: IntakeStateMachine,
        admin: AdminWorkflow,
        locks: Optional[KeyedLock] = None,
        admin_telegram_ids: Iterable[int] = (),
    ):
        self.uow_factory = uow_factory
        self.intake = intake
        self.admin = admin
        self.locks = locks or KeyedLock()
        self.admin_telegram_ids = frozenset(admin_telegram_ids)

    async def handle(self, event: IntakeEvent) -> List[Renderable]:
        """Process one event and return the replies for the sender."""
        effects = AfterCommit()
        async with self.locks.hold(event.identity.key):
            replies = await self._process(event, effects)
        await effects.run()
        return replies

    async def _process(self, event: IntakeEvent, effects: AfterCommit) -> List[Renderable]:
        async with self.uow_factory() as uow:
            user = await self._load_user(uow, event)
            user_id = user.id
            use_admin = self.admin.accepts(user, event)
            workflow = "admin" if use_admin else "intake"

            try:
                if use_admin:
                    replies = await self.admin.handle(uow, user, event, effects)
                else:
                    replies = await self.intake.handle(uow, user, event, effects)
                await uow.commit()
            except ValidationError as exc:
                await uow.rollback()
                effects.clear()
                logger.info("event_rejected", identity=event.identity.key, workflow=workflow, reason=exc.message)
                return [Renderable(exc.message)]
            except InvalidTransition as exc:
                await uow.rollback()
                effects.clear()
                logger.warning(
                    "invalid_transition",
                    identity=event.identity.key,
                    user_id=user_id,
                    error=str(exc),
                )
                return [texts.invalid_transition(exc.current, exc.requested)]
            except NotFound as exc:
                await uow.rollback()
                effects.clear()
                await uow.refresh(user)
                if use_admin:
                    user.reset_admin()
                else:
                    user.reset_intake(IntakeState.idle)
                await uow.commit()
                logger.warning(
                    "reference_not_found",
                    identity=event.identity.key,
                    user_id=user_id,
                    workflow=workflow,
                    entity=exc.entity,
                    key=exc.key,
                )
                return [texts.not_found(exc.entity), texts.main_menu(user)]

            logger.info(
                "event_processed",
                identity=event.identity.key,
                kind=event.kind.value,
                choice_id=event.choice_id,
                workflow=workflow,
                intake_state=IntakeState(user.conversation_state).value,
                admin_state=AdminState(user.admin_state).value,
                side_effects=len(effects),
            )
            return replies

    async def _load_user(self, uow: UnitOfWork, event: IntakeEvent) -> User:
        """Fetch the sender's record, creating it on first contact."""
        identity = event.identity
        promote = isinstance(identity, TelegramId) and identity.value in self.admin_telegram_ids
        user = await uow.users.by_identity(identity)
        changed = False

        if user is None:
            phone = None
            if isinstance(identity, WhatsAppId) and looks_like_phone(identity.value):
                phone = normalize_phone(identity.value)
            user = await uow.users.create(
                identity,
                display_name=event.display_name,
                phone=phone,
                role=UserRole.admin if promote else UserRole.customer,
            )
            logger.info("user_created", identity=identity.key, user_id=user.id, role=user.role.value)
            changed = True
        else:
            if event.display_name and user.display_name != event.display_name:
                user.display_name = event.display_name
                changed = True
            if promote and not user.is_admin:
                user.role = UserRole.admin
                logger.info("user_promoted", identity=identity.key, user_id=user.id)
                changed = True

        if changed:
            user.touch()
            await uow.commit()
        return user
