"""Lock key generators for billing package."""


def entity_contract_lock_key(entity_id: str) -> str:
    """Generate lock key serializing contract mutations for an entity."""
    return f"billing:entity:{entity_id}"
