"""
Walk through one editing session against the in-memory backend.

Run from the repository root after installing the package:
    python examples/console_demo.py
"""
import asyncio
import logging

from diligencestate import (
    DataManagementSession,
    InMemoryBackend,
    ProfileKind,
    Tier,
)

logger = logging.getLogger(__name__)


EDITOR = {
    'id': 'editor-1',
    'fields': {'name': 'Acme Software', 'business_criticality': 'High', 'country': 'FR'},
    'children': [
        {
            'id': 'sol-portal',
            'createdAt': None,
            'fields': {'name': 'Portal', 'main_use_case': 'Customer portal'},
            'grandchildren': [],
        },
        {
            'id': 'sol-billing',
            'createdAt': '2024-01-01T00:00:00Z',
            'fields': {'name': 'Billing', 'main_use_case': 'Invoicing'},
            'grandchildren': [
                {
                    'id': 'env-prod',
                    'createdAt': '2024-01-05T00:00:00Z',
                    'fields': {'env_type': 'production', 'redundancy': 'geo_redundant'},
                    'profiles': {'hosting': {'provider': 'OVH', 'region': 'eu-west'}},
                },
            ],
        },
    ],
}


def show(engine, title):
    s = engine.state
    logger.info(
        f"{title}: tier={s.active_tier.value} child={s.selected_child_id!r} "
        f"grandchild={s.selected_grandchild_id!r} dirty={engine.is_dirty}"
    )


async def main():
    backend = InMemoryBackend([EDITOR])
    session = DataManagementSession(backend, mutations=backend)
    session.add_data_changed_callback(lambda record_id: logger.info(f"data changed for {record_id!r}"))

    engine = await session.open_record('editor-1')
    show(engine, "opened")

    engine.navigate(Tier.GRANDCHILD)
    engine.update_field(Tier.GRANDCHILD, 'redundancy', 'high')
    engine.update_profile_field(ProfileKind.HOSTING, 'region', 'eu-central')
    show(engine, "edited")

    result = await engine.save(Tier.GRANDCHILD)
    logger.info(f"save grandchild ok={result.ok}")
    result = await engine.save_profile(ProfileKind.HOSTING)
    logger.info(f"save hosting ok={result.ok}")

    engine.update_field(Tier.RECORD, 'country', 'DE')
    engine.cancel()
    show(engine, "cancelled")

    engine.begin_create(Tier.CHILD)
    engine.update_field(Tier.CHILD, 'name', 'Analytics')
    result = await engine.commit_create(Tier.CHILD)
    if not result.ok:
        logger.info(f"create refused: {result.error}")
        engine.update_field(Tier.CHILD, 'main_use_case', 'Reporting')
        result = await engine.commit_create(Tier.CHILD)
    logger.info(f"create child ok={result.ok}")
    await session.refresh()
    logger.info(f"children: {[c.id for c in engine.visible_children()]}")

    engine.toggle_archived()
    await engine.archive(Tier.CHILD, 'sol-billing')
    show(engine, "billing archived while hidden")
    engine.navigate(Tier.CHILD)
    show(engine, "navigated")

    session.close()


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    asyncio.run(main())
