"""
scripts/seed_data.py — Initial data
UBS Manager v1.0
Idempotent: creates the default UBS and the congenital syphilis disease
only when they are missing. Uses DATABASE_URL (or the in-memory store).

Run with: python -m scripts.seed_data
"""

import asyncio

from core.config import get_settings
from core.logging_config import configure_logging, get_logger
from models.schemas import DiseaseCreate, UbsCreate
from services.factory import build_storage
from services.storage import Storage, collation_key

logger = get_logger("seed")

DEFAULT_UBS = UbsCreate(
    name="UBS Central",
    address="Rua Principal, 100",
    city="São Paulo",
    state="SP",
    district="Centro",
)

SIFILIS_CONGENITA = DiseaseCreate(
    name="Sífilis Congênita",
    icd10_code="A50",
    description="Infecção por Treponema pallidum transmitida da gestante ao bebê.",
    symptoms="Lesões cutâneas, hepatoesplenomegalia, alterações ósseas e neurológicas.",
    treatment_info="Penicilina conforme protocolo do Ministério da Saúde.",
    prevention_info="Pré-natal com testagem e tratamento da gestante e do parceiro.",
)


async def seed(storage: Storage) -> dict:
    """Returns what was created, keyed by kind (empty when nothing was missing)."""
    created = {}

    wanted = collation_key(DEFAULT_UBS.name)[0]
    if not any(collation_key(u.name)[0] == wanted for u in await storage.list_ubs()):
        ubs = await storage.create_ubs(DEFAULT_UBS)
        created["ubs"] = ubs
        logger.info(f"✅ Created UBS: {ubs.name} (id={ubs.id})")
    else:
        logger.info(f"ℹ️ UBS already exists: {DEFAULT_UBS.name}")

    if not any(d.name == SIFILIS_CONGENITA.name for d in await storage.list_diseases()):
        disease = await storage.create_disease(SIFILIS_CONGENITA)
        created["disease"] = disease
        logger.info(f"✅ Created Disease: {disease.name} (id={disease.id})")
    else:
        logger.info(f"ℹ️ Disease already exists: {SIFILIS_CONGENITA.name}")

    return created


async def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    storage = build_storage(settings)
    logger.info("🌱 Seeding database...")
    await storage.init()
    try:
        await seed(storage)
    finally:
        await storage.close()
    logger.info("🌱 Seeding complete!")


if __name__ == "__main__":
    asyncio.run(main())
