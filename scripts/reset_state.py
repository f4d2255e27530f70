"""Reset all dispatch state in Redis (useful for testing)."""

import asyncio

from porter.config import get_settings
from porter.state.manager import StateManager


async def reset_all_state() -> None:
    """Clear every key under the configured namespace."""
    prefix = get_settings().key_prefix
    print(f"\n⚠️  WARNING: This will delete ALL '{prefix}:*' keys from Redis!")
    response = input("Are you sure? (yes/no): ")

    if response.lower() != "yes":
        print("Cancelled.")
        return

    print("\nResetting state...")

    state_manager = StateManager()
    await state_manager.connect()

    removed = await state_manager.clear_namespace()

    await state_manager.disconnect()

    print(f"✓ Removed {removed} keys from Redis\n")


if __name__ == "__main__":
    asyncio.run(reset_all_state())
