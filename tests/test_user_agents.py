from pagefetch.workflows.user_agents import USER_AGENTS, hash_string, pick_user_agent


def test_fixed_mode_returns_configured_value():
    assert pick_user_agent("fixed", "https://example.com/", fixed="TestAgent/1.0") == "TestAgent/1.0"


def test_url_mode_is_deterministic_and_from_pool():
    url = "https://example.com/articles/42"
    first = pick_user_agent("url", url, "mobile")
    second = pick_user_agent("url", url, "mobile")

    assert first == second
    assert first in USER_AGENTS["mobile"]


def test_every_family_picks_from_its_own_pool():
    for family, pool in USER_AGENTS.items():
        for i in range(20):
            assert pick_user_agent("url", f"https://host{i}.example/", family) in pool


def test_unknown_family_uses_desktop_pool():
    assert pick_user_agent("url", "https://example.com/", "smartwatch") in USER_AGENTS["desktop"]


def test_empty_url_uses_first_entry():
    assert pick_user_agent("url", "", "tablet") == USER_AGENTS["tablet"][0]


def test_hash_matches_known_fnv1a_values():
    # 32-bit FNV-1a offset basis for the empty string, reinterpreted as signed.
    assert hash_string("") == abs(2166136261 - 2**32)
    assert hash_string("a") == abs(0xE40C292C - 2**32)
    assert hash_string("desktop:https://example.com/") >= 0
