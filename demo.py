#!/usr/bin/env python3
"""
VaultSync Demo - Shows delegated access and optimistic sync.

This demo runs two clients (an owner and a manager delegate) against the
in-memory remote store, so it needs no backend.
"""

import asyncio

from vaultsync import InMemoryRemoteStore, Vault, VaultClient, setup_logging


async def main():
    setup_logging()

    print("=" * 60)
    print("VaultSync Demo - Delegated access and optimistic sync")
    print("=" * 60)
    print()

    remote = InMemoryRemoteStore()
    remote.seed_vault(Vault(id="home", name="Home", owner_id="alice"))
    remote.seed_vault(Vault(id="attic", name="Attic", owner_id="alice"))
    remote.seed_vault(Vault(id="bobs", name="Bob's place", owner_id="bob"))

    async with VaultClient(remote, "alice") as alice, VaultClient(remote, "bob") as bob:
        # 1. Optimistic creates
        print("[Step 1] Alice creates a collection and an asset under it...")
        with alice.lease("home"):
            remote.pause()
            creating = asyncio.create_task(alice.create_collection("home", "Jewelry"))
            await asyncio.sleep(0)
            provisional = alice.collections_for_vault("home")[0]
            print(f"  - Visible before confirmation as {provisional.id}")

            ring = await alice.create_asset(provisional.id, "Ring", quantity=2, estimated_value=450.0)
            print(f"  - Ring queued under provisional parent (pending={ring.pending})")

            remote.resume()
            created = await creating
            await alice.drain()
            print(f"  - Confirmed as {created.id}")
            for asset in alice.assets_for_collection(created.id):
                print(f"    {asset.id}: {asset.title} x{asset.quantity}")
            print(f"  - Vault value: {alice.vault_total_value('home'):.2f}")

        # 2. Sharing
        print("\n[Step 2] Alice invites Bob as manager...")
        invited = await alice.invite_to_vault("home", "bob", "manager")
        code = remote.invitations[invited.id].code
        joined = await bob.accept_invitation_code(code)
        print(f"  - Bob joined vault {joined.id}")
        caps = bob.capabilities_for_vault("home")
        print(f"  - Bob: role={caps.role} edit={caps.can_edit} move={caps.can_move} delete={caps.can_delete}")

        # 3. Delegate limits
        print("\n[Step 3] Bob tries owner-only and cross-owner actions...")
        with bob.lease("home"):
            asset_id = bob.assets_for_vault("home")[0].id
            denied = await bob.delete_asset(asset_id)
            print(f"  - Delete: {denied.code.value} ({denied.message})")

            collection_id = bob.collections_for_vault("home")[0].id
            moved = await bob.move_collection(collection_id, "bobs")
            print(f"  - Move into Bob's vault: {moved.code.value} ({moved.message})")

            cloned = await bob.clone_asset(asset_id)
            print(f"  - Clone: ok={cloned.ok} id={cloned.id}")

        # 4. Stale write
        print("\n[Step 4] Concurrent edit on another device...")
        with alice.lease("home"):
            remote.touch("asset", asset_id)
            stale = await alice.update_asset(asset_id, {"title": "Gold ring"})
            print(f"  - First save: {stale.code.value} ({stale.message})")
            remote.publish("home", force=True)
            retry = await alice.update_asset(asset_id, {"title": "Gold ring"})
            print(f"  - After reload: ok={retry.ok}")

    print()
    print("=" * 60)
    print("Demo completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
