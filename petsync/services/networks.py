from datetime import datetime, timezone
from urllib.parse import urlparse

from loguru import logger

from petsync.database import AsyncSessionLocal
from petsync.models import AffiliateNetwork
from petsync.services.catalogs import SETTINGS_SCHEMA_VERSION, infer_network_type, parse_network_settings
from petsync.services.product_sync import NetworkProductSync

def affiliate_id_from_url(url: str) -> str:
    """https://www.zooplus.com/... -> zooplus"""
    host = (urlparse(url).hostname or "").lower()
    if not host:
        raise ValueError(f"Invalid network URL: {url!r}")
    return host.removeprefix("www.").split(".")[0]

async def add_network(name: str, url: str, commission_rate: float = 5, update_frequency_hours: int = 24,
                      network_type: str | None = None, session_factory=AsyncSessionLocal,
                      product_sync: NetworkProductSync | None = None) -> tuple[AffiliateNetwork, int]:
    """Создает сеть и сразу запускает первичную синхронизацию (ее сбой не фатален)"""
    if not name or not url:
        raise ValueError("URL and name are required")

    network = AffiliateNetwork(
        name=name,
        affiliate_id=affiliate_id_from_url(url),
        commission_rate=commission_rate,
        update_frequency_hours=update_frequency_hours,
        is_active=True,
        settings={
            "network_type": network_type or infer_network_type(name, url),
            "schema_version": SETTINGS_SCHEMA_VERSION,
            "source_url": url,
            "added_manually": True,
            "added_at": datetime.now(timezone.utc).isoformat(),
        },
    )
    # Проверяем форму настроек до записи
    parse_network_settings(network)

    async with session_factory() as session:
        session.add(network)
        await session.commit()
        await session.refresh(network)

    logger.success(f"Network {name} added (affiliate id {network.affiliate_id})")

    synced = 0
    try:
        synced = await (product_sync or NetworkProductSync(session_factory)).sync_network(network)
    except Exception as e:
        logger.error(f"Initial sync failed for {name} (non-fatal): {e}")

    return network, synced
