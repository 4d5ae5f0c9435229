"""
Manifest Bot start-up.

Wires the database, ledger, channels and workflows together and runs
Telegram long polling and the WhatsApp webhook side by side.
"""

import asyncio
from typing import List

import structlog
from aiogram import Bot, Dispatcher
from aiohttp import web
from dotenv import load_dotenv

from manifest_bot.channels.telegram import TelegramChannel, router as telegram_router
from manifest_bot.channels.whatsapp import WhatsAppChannel, create_webhook_app
from manifest_bot.config import Settings, get_settings
from manifest_bot.core.admin import AdminWorkflow
from manifest_bot.core.engine import ConversationEngine
from manifest_bot.core.interfaces import NotificationChannel
from manifest_bot.core.intake import IntakeStateMachine
from manifest_bot.core.lifecycle import OrderLifecycleManager
from manifest_bot.core.notifications import NotificationDispatcher
from manifest_bot.db import create_tables, get_engine_and_session
from manifest_bot.ledger import build_ledger
from manifest_bot.storage import unit_of_work_factory
from manifest_bot.utils.logger import configure_logging

logger = structlog.get_logger()


async def main(settings: Settings) -> None:
    logger.info("Starting Manifest Bot")

    db_engine, session_factory = get_engine_and_session(settings.database_url)
    await create_tables(db_engine)
    uow_factory = unit_of_work_factory(session_factory)

    ledger = build_ledger(settings)
    bot = Bot(token=settings.telegram_token) if settings.telegram_enabled else None
    whatsapp = (
        WhatsAppChannel(settings.whatsapp_token, settings.whatsapp_phone_id, settings.whatsapp_api_url)
        if settings.whatsapp_enabled
        else None
    )

    channels: List[NotificationChannel] = []
    telegram_channel = TelegramChannel(bot) if bot else None
    if telegram_channel:
        channels.append(telegram_channel)
    if whatsapp:
        channels.append(whatsapp)

    notifier = NotificationDispatcher(uow_factory, channels)
    lifecycle = OrderLifecycleManager(ledger, notifier)
    engine = ConversationEngine(
        uow_factory,
        IntakeStateMachine(lifecycle, notifier),
        AdminWorkflow(lifecycle),
        admin_telegram_ids=settings.admin_ids,
    )

    tasks = []
    runner = None
    if bot:
        dp = Dispatcher(engine=engine, telegram_channel=telegram_channel)
        dp.include_router(telegram_router)
        tasks.append(dp.start_polling(bot))
        logger.info("telegram_polling_enabled")
    if whatsapp:
        app = create_webhook_app(engine, whatsapp, settings.whatsapp_verify_token)
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, settings.webhook_host, settings.webhook_port)
        await site.start()
        tasks.append(asyncio.Event().wait())
        logger.info("whatsapp_webhook_started", host=settings.webhook_host, port=settings.webhook_port)

    if not tasks:
        logger.error("no_channel_configured")

    try:
        if tasks:
            await asyncio.gather(*tasks)
    finally:
        if runner:
            await runner.cleanup()
        if bot:
            await bot.session.close()
        if whatsapp:
            await whatsapp.aclose()
        if ledger:
            await ledger.aclose()
        await db_engine.dispose()
        logger.info("Manifest Bot stopped")


def run() -> None:
    load_dotenv()
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    try:
        asyncio.run(main(settings))
    except (KeyboardInterrupt, SystemExit):
        logger.info("Interrupted")


if __name__ == "__main__":
    run()
