#!/usr/bin/env python3
"""
Install the default form templates.

Usage:
    python scripts/seed_form_templates.py --owner-id admin-1
"""

import asyncio
import argparse
import sys
from pathlib import Path

# Add parent directory to path to import secure_upload
sys.path.insert(0, str(Path(__file__).parent.parent))

from secure_upload.config import settings
from secure_upload.core.logging_config import setup_logging
from secure_upload.repositories.factory import build_store
from secure_upload.schemas.auth import CurrentUser, UserRole
from secure_upload.seeds import seed_form_templates
from secure_upload.services.template_service import TemplateService


async def main():
    """Main function."""
    parser = argparse.ArgumentParser(description="Seed default form templates")
    parser.add_argument("--owner-id", required=True, help="Id recorded as the templates' creator (required)")
    args = parser.parse_args()

    setup_logging()
    store = await build_store(settings)
    try:
        owner = CurrentUser(id=args.owner_id, role=UserRole.ADMIN.value)
        created = await seed_form_templates(TemplateService(store.templates), owner)
    except Exception as e:
        print(f"Error seeding form templates: {str(e)}", file=sys.stderr)
        sys.exit(1)
    finally:
        await store.close()

    for template in created:
        print(f"Created template {template.name} ({template.id}) with {len(template.fields)} fields")
    if not created:
        print("Templates already present, nothing to do")


if __name__ == "__main__":
    asyncio.run(main())
