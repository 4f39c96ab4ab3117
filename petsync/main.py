import asyncio
import json
import sys

import typer
from loguru import logger
from redis import asyncio as aioredis
from sqlalchemy import select

from petsync.config import settings
from petsync.database import AsyncSessionLocal, init_db as create_tables
from petsync.models import Category, ScrapingSource
from petsync.services.aliexpress import AliExpressClient
from petsync.services.catalogs import NetworkSettingsError
from petsync.services.ingestion import ListingIngestionJob
from petsync.services.networks import add_network as create_network
from petsync.services.orchestrator import Action, run_action

app = typer.Typer()

SOURCE_QUEUE = "petsync:source_queue"

DEFAULT_CATEGORIES = (
    ("Dogs", "dogs", "🐕"),
    ("Cats", "cats", "🐈"),
    ("Birds", "birds", "🦜"),
    ("Fish", "fish", "🐠"),
)

def configure_logging():
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL)

def _print(result):
    typer.echo(json.dumps(result, ensure_ascii=False, indent=2, default=str))

async def _with_timeout(coro):
    # Жесткий лимит на весь прогон задачи
    return await asyncio.wait_for(coro, timeout=settings.JOB_TIMEOUT)

@app.callback()
def main():
    configure_logging()

@app.command(name="init-db")
def init_db():
    """Создает таблицы"""
    asyncio.run(create_tables())
    logger.success("Tables created")

@app.command(name="seed-categories")
def seed_categories():
    """Добавляет справочник категорий (dogs/cats/birds/fish), если его нет"""
    async def run():
        async with AsyncSessionLocal() as session:
            existing = set((await session.execute(select(Category.slug))).scalars())
            for name, slug, icon in DEFAULT_CATEGORIES:
                if slug not in existing:
                    session.add(Category(name=name, slug=slug, icon=icon))
            await session.commit()
        logger.success("Categories seeded")

    asyncio.run(run())

@app.command()
def run(action: Action = typer.Argument(Action.full_sync, help="Какую стадию запускать")):
    """Запускает одну стадию конвейера или полный прогон"""
    result = asyncio.run(_with_timeout(run_action(action)))
    _print(result)

@app.command(name="add-network")
def add_network(
    name: str = typer.Option(..., help="Название сети"),
    url: str = typer.Option(..., help="Сайт партнера"),
    commission_rate: float = typer.Option(5, help="Комиссия, %"),
    update_frequency_hours: int = typer.Option(24),
    network_type: str = typer.Option(None, help="amazon / aliexpress / generic"),
):
    """Добавляет партнерскую сеть и запускает первичную синхронизацию"""
    try:
        network, synced = asyncio.run(
            create_network(name, url, commission_rate, update_frequency_hours, network_type)
        )
    except (ValueError, NetworkSettingsError) as e:
        raise typer.BadParameter(str(e))
    _print({"success": True, "network_id": network.id, "affiliate_id": network.affiliate_id,
            "products_synced": synced})

@app.command(name="search-products")
def search_products(
    keywords: str,
    tracking_id: str = typer.Option("petsync", help="AliExpress tracking id"),
    page: int = typer.Option(1),
    page_size: int = typer.Option(20),
):
    """Поиск товаров AliExpress без сохранения в базу"""
    async def run():
        client = AliExpressClient()
        try:
            if not client.configured:
                return {"error": "API credentials not configured"}
            return {"products": await client.search(keywords, tracking_id, page_no=page, page_size=page_size)}
        finally:
            await client.close()

    _print(asyncio.run(run()))

@app.command()
def producer():
    """Ставит в очередь id всех активных источников"""
    async def run():
        redis = await aioredis.from_url(settings.REDIS_URL)
        async with AsyncSessionLocal() as session:
            ids = (await session.execute(
                select(ScrapingSource.id).where(ScrapingSource.is_active.is_(True))
            )).scalars().all()

        for source_id in ids:
            await redis.lpush(SOURCE_QUEUE, source_id)

        await redis.aclose()
        logger.success(f"Enqueued {len(ids)} sources")

    asyncio.run(run())

@app.command()
def worker():
    """Воркер: забирает источники из очереди и парсит по одному"""
    async def run():
        redis = await aioredis.from_url(settings.REDIS_URL)

        logger.info("Worker started. Listening to queue...")

        try:
            while True:
                task = await redis.blpop([SOURCE_QUEUE], timeout=5)
                if not task:
                    continue

                _, data = task
                source_id = int(data)
                logger.info(f"[SOURCE] Scraping source {source_id}")

                try:
                    # Новый job на каждое сообщение: состояние между прогонами не переносится
                    outcomes = await _with_timeout(ListingIngestionJob().run(source_ids=[source_id]))
                    for outcome in outcomes:
                        logger.info(json.dumps(outcome.to_dict(), ensure_ascii=False))
                except Exception as e:
                    logger.error(f"Source {source_id} failed: {e}")

                await asyncio.sleep(2)
        finally:
            await redis.aclose()

    asyncio.run(run())

if __name__ == "__main__":
    app()
