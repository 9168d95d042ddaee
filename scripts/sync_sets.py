#!/usr/bin/env python3
"""Reconcile Discourse group membership for every linked host user.

For each row in connector_user, the linked Discourse account is looked up and
its groups are brought in line with the sets granted in set_mapping: missing
grants are added, ungranted groups are removed. Builtin groups (admins,
moderators, staff, trust levels) are never removed. Accounts deleted on the
forum are skipped.

Usage:
    python scripts/sync_sets.py [--dry-run]
"""

import logging
import sys


def main() -> None:
    from discourse_connector import create_app

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    dry_run = "--dry-run" in sys.argv

    app = create_app()

    with app.app_context():
        from discourse_client import DriverError
        from discourse_connector.models.connector_user import ConnectorUser
        from discourse_connector.models.set_mapping import SetMapping
        from discourse_connector.services.directory import get_client
        from discourse_connector.services.sync_service import sync_all

        try:
            client = get_client()
        except DriverError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            sys.exit(1)

        links = ConnectorUser.get_all()
        print(f"Linked users: {len(links)}")

        if dry_run:
            for link in links:
                allowed = SetMapping.allowed_sets(link.user_id)
                print(f"  {link.connector_name} ({link.connector_id}): allowed {', '.join(allowed) or '-'}")
            sys.exit(0)

        try:
            results = sync_all(client)
        except DriverError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            sys.exit(1)

        failed = 0
        for result in results:
            if result.changed:
                print(
                    f"  {result.user_id}: +{','.join(result.added) or '-'} "
                    f"-{','.join(result.removed) or '-'}"
                )
            for error in result.errors:
                print(f"  {result.user_id}: {error}")
            failed += bool(result.errors)

        print(f"\n--- Summary ---")
        print(f"Synced  : {len(results)}")
        print(f"Skipped : {len(links) - len(results)}")
        print(f"Failed  : {failed}")
        sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
