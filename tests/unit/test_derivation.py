"""
Tests for program-derived addresses.

Tests cover:
1. Known ledger vectors
2. Bump search
3. Seed limits
4. Registry account helpers
"""

import pytest

from truthminer.crypto import from_base58, to_base58, is_on_curve, generate_keypair
from truthminer.core.errors import SeedTooLong
from truthminer.core.derivation import (
    MAX_SEED_LENGTH,
    MAX_SEEDS,
    create_program_address,
    find_program_address,
    derive,
    miner_profile_address,
    category_stats_address,
    query_address,
    vote_stats_address,
    voter_record_address,
    derive_commit_accounts,
    derive_reveal_accounts,
)


UPGRADEABLE_LOADER = from_base58("BPFLoaderUpgradeab1e11111111111111111111111")


class TestCreateProgramAddress:
    """Vectors produced by the ledger's reference implementation."""

    def test_empty_seed_and_bump(self):
        address = create_program_address([b"", bytes([1])], UPGRADEABLE_LOADER)
        assert to_base58(address) == "BwqrghZA2htAcqq8dzP1WDAhTXYTYWj7CHxF5j7TDBAe"

    def test_unicode_seed(self):
        address = create_program_address(["☉", bytes([0])], UPGRADEABLE_LOADER)
        assert to_base58(address) == "13yWmRpaTR4r5nAktwLqMpRNr28tnVUZw26rTvPSSB19"

    def test_two_seeds(self):
        address = create_program_address([b"Talking", b"Squirrels"], UPGRADEABLE_LOADER)
        assert to_base58(address) == "2fnQrngrQT4SeLcdToJAD96phoEjNL2man2kfRLCASVk"

    def test_seed_order_matters(self):
        a = create_program_address([b"Talking"], UPGRADEABLE_LOADER)
        b = create_program_address([b"Talking", b"Squirrels"], UPGRADEABLE_LOADER)
        assert a != b


class TestSeedLimits:

    def test_max_seed_length_ok(self):
        create_program_address([bytes(MAX_SEED_LENGTH)], UPGRADEABLE_LOADER)

    def test_seed_too_long(self):
        with pytest.raises(SeedTooLong):
            create_program_address([bytes([127]) * (MAX_SEED_LENGTH + 1)], UPGRADEABLE_LOADER)

    def test_too_many_seeds(self):
        seeds = [bytes([i]) for i in range(MAX_SEEDS + 1)]
        with pytest.raises(SeedTooLong):
            create_program_address(seeds, UPGRADEABLE_LOADER)

    def test_find_reserves_bump_slot(self):
        seeds = [bytes([i]) for i in range(MAX_SEEDS)]
        with pytest.raises(SeedTooLong):
            find_program_address(seeds, UPGRADEABLE_LOADER)

    def test_seed_too_long_is_value_error(self):
        with pytest.raises(ValueError):
            derive("query", "SPORTS", "x" * 40, program_id=UPGRADEABLE_LOADER)


class TestFindProgramAddress:

    def test_canonical_bump(self):
        address, bump = find_program_address([b"Lil'", b"Bits"], UPGRADEABLE_LOADER)
        assert address == create_program_address([b"Lil'", b"Bits", bytes([bump])], UPGRADEABLE_LOADER)
        assert not is_on_curve(address)

    def test_deterministic(self):
        assert find_program_address([b"miner"], UPGRADEABLE_LOADER) == \
            find_program_address([b"miner"], UPGRADEABLE_LOADER)

    def test_off_curve_for_many_keys(self):
        for _ in range(5):
            voter = generate_keypair().public_key
            assert not is_on_curve(miner_profile_address(voter, UPGRADEABLE_LOADER))


class TestRegistryAddresses:

    @pytest.fixture
    def voter(self):
        return generate_keypair().public_key

    def test_derive_matches_helpers(self, voter, program_id):
        assert derive("miner", voter, program_id=program_id) == miner_profile_address(voter, program_id)
        assert derive("category", "SPORTS", program_id=program_id) == \
            category_stats_address("SPORTS", program_id)

    def test_query_depends_on_both_ids(self, program_id):
        a = query_address("SPORTS", "match-1", program_id)
        b = query_address("SPORTS", "match-2", program_id)
        c = query_address("CRYPTO", "match-1", program_id)
        assert len({a, b, c}) == 3

    def test_program_scoped(self, voter, program_id):
        assert miner_profile_address(voter, program_id) != miner_profile_address(voter, UPGRADEABLE_LOADER)

    def test_accepts_base58(self, program_id):
        query = query_address("SPORTS", "match-1", program_id)
        assert vote_stats_address(to_base58(query), program_id) == vote_stats_address(query, program_id)

    def test_commit_accounts(self, voter, program_id):
        query = query_address("SPORTS", "match-1", program_id)
        accounts = derive_commit_accounts(voter, query, "SPORTS", program_id)
        miner = miner_profile_address(voter, program_id)
        assert accounts.voter == voter
        assert accounts.miner_profile == miner
        assert accounts.category_stats == category_stats_address("SPORTS", program_id)
        assert accounts.voter_record == voter_record_address(query, miner, program_id)
        assert len(accounts.describe()) == 3

    def test_reveal_shares_voter_record(self, voter, program_id):
        query = query_address("SPORTS", "match-1", program_id)
        commit = derive_commit_accounts(voter, query, "SPORTS", program_id)
        reveal = derive_reveal_accounts(voter, query, program_id)
        assert reveal.voter_record == commit.voter_record
        assert reveal.vote_stats == vote_stats_address(query, program_id)
