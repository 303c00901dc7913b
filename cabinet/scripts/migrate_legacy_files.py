"""Move files stored on local disk into object storage.

Run once after deploying object storage:

    python -m cabinet.scripts.migrate_legacy_files
"""
import asyncio
import logging
from typing import Tuple
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cabinet.core.legacy import LegacyFileStore
from cabinet.core.storage import StorageAdapter
from cabinet.repositories.file import FileRepository
from cabinet.utils.exceptions import StorageFailureError

logger = logging.getLogger(__name__)


async def migrate_legacy_files(
    db: AsyncSession,
    storage: StorageAdapter,
    legacy_store: LegacyFileStore,
) -> Tuple[int, int]:
    """Upload every legacy file and record its storage path; returns (migrated, skipped)"""
    file_repo = FileRepository(db)
    # Plain tuples survive the rollback of a failed row
    pending = [
        (f.id, f.owner_id, f.folder_id, f.original_name, f.mime_type, f.legacy_path)
        for f in await file_repo.list_legacy()
    ]
    logger.info(f"Found {len(pending)} files to migrate")

    migrated = skipped = 0
    for file_id, owner_id, folder_id, original_name, mime_type, legacy_path in pending:
        if not await legacy_store.exists(legacy_path):
            logger.warning(f"Local file not found, skipping: {legacy_path}")
            skipped += 1
            continue

        try:
            data = await legacy_store.read(legacy_path)
            storage_path = await storage.put(owner_id, folder_id, original_name, data, mime_type)
            await file_repo.set_storage_path(file_id, storage_path)
        except StorageFailureError as e:
            logger.error(f"Failed to migrate {original_name} ({file_id}): {e}")
            skipped += 1
            continue
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Failed to record storage path for {original_name} ({file_id}), object {storage_path} is orphaned: {e}")
            skipped += 1
            continue

        logger.info(f"Migrated {original_name} to {storage_path}")
        migrated += 1

    logger.info(f"Migration completed: {migrated} migrated, {skipped} skipped")
    return migrated, skipped


async def main() -> None:
    from cabinet.core.database import AsyncSessionLocal
    from cabinet.core.logging import setup_logging
    from cabinet.core.minio import minio_client

    setup_logging()
    await minio_client.ensure_bucket_exists()
    async with AsyncSessionLocal() as session:
        await migrate_legacy_files(session, StorageAdapter(minio_client), LegacyFileStore())


if __name__ == "__main__":
    asyncio.run(main())
