"""Program-derived addresses — deterministic account addresses owned by a program.

A program-derived address is the first ``SHA256(seeds || bump || program_id ||
"ProgramDerivedAddress")`` (bump counting down from 255) that does *not*
decode to a point on the ed25519 curve, so no private key can sign for it.
Nullifier marker accounts are created at such addresses when a note is spent.
"""

from __future__ import annotations

import hashlib

from ecdsa.eddsa import curve_ed25519
from ecdsa.ellipticcurve import PointEdwards
from ecdsa.errors import MalformedPointError

from shielded_sync.ledger.keys import PublicKey

_PDA_MARKER = b"ProgramDerivedAddress"
_MAX_SEED_LENGTH = 32
_MAX_SEEDS = 16

# Seeds of the two nullifier slots a note can be spent through
NULLIFIER_SEEDS = (b"nullifier0", b"nullifier1")


def is_on_curve(candidate: bytes) -> bool:
    """Check whether 32 bytes decompress to a point on the ed25519 curve."""
    try:
        PointEdwards.from_bytes(curve_ed25519, candidate)
    except MalformedPointError:
        return False
    return True


def create_program_address(seeds: list[bytes], program_id: PublicKey) -> PublicKey:
    """Hash *seeds* into an address owned by *program_id*.

    Raises:
        ValueError: If a seed is too long or the hash lands on the curve.
    """
    if len(seeds) > _MAX_SEEDS:
        msg = f"Too many seeds: {len(seeds)} > {_MAX_SEEDS}"
        raise ValueError(msg)
    h = hashlib.sha256()
    for seed in seeds:
        if len(seed) > _MAX_SEED_LENGTH:
            msg = f"Seed exceeds {_MAX_SEED_LENGTH} bytes"
            raise ValueError(msg)
        h.update(seed)
    h.update(program_id.raw)
    h.update(_PDA_MARKER)
    digest = h.digest()
    if is_on_curve(digest):
        msg = "Derived address lies on the ed25519 curve"
        raise ValueError(msg)
    return PublicKey(digest)


def find_program_address(seeds: list[bytes], program_id: PublicKey) -> tuple[PublicKey, int]:
    """Find the first valid program address for *seeds*, searching bumps 255..0.

    Returns:
        ``(address, bump)``.

    Raises:
        ValueError: If no bump produces an off-curve address.
    """
    for bump in range(255, -1, -1):
        try:
            address = create_program_address([*seeds, bytes([bump])], program_id)
        except ValueError:
            continue
        return address, bump
    msg = "Unable to find a viable program address bump seed"
    raise ValueError(msg)


def nullifier_seed(nullifier: int) -> bytes:
    """Encode a nullifier field element as the 32-byte big-endian seed."""
    return nullifier.to_bytes(32, "big")


def nullifier_marker_addresses(nullifier: int, program_id: PublicKey) -> tuple[PublicKey, PublicKey]:
    """Derive the two marker addresses whose existence means *nullifier* was spent."""
    seed = nullifier_seed(nullifier)
    marker_a, _ = find_program_address([NULLIFIER_SEEDS[0], seed], program_id)
    marker_b, _ = find_program_address([NULLIFIER_SEEDS[1], seed], program_id)
    return marker_a, marker_b
