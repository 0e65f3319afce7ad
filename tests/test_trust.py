"""Tests for the URL trust policy."""

from prompt_registry.trust import TrustPolicy


def test_subdomain_of_trusted_domain_is_accepted():
    policy = TrustPolicy(["githubusercontent.com"])
    assert policy.is_trusted("https://raw.githubusercontent.com/org/repo/main/registry.json")
    assert policy.is_trusted("https://githubusercontent.com/registry.json")


def test_plain_http_rejected_when_https_required():
    policy = TrustPolicy(["githubusercontent.com"])
    assert not policy.is_trusted("http://raw.githubusercontent.com/registry.json")


def test_plain_http_allowed_when_https_not_required():
    policy = TrustPolicy(["example.com"], require_https=False)
    assert policy.is_trusted("http://example.com/registry.json")
    assert not policy.is_trusted("ftp://example.com/registry.json")


def test_lookalike_domains_rejected():
    policy = TrustPolicy(["github.com"])
    assert not policy.is_trusted("https://evilgithub.com/registry.json")
    assert not policy.is_trusted("https://github.com.evil.io/registry.json")


def test_unparseable_urls_rejected():
    policy = TrustPolicy(["example.com"])
    assert not policy.is_trusted("not a url")
    assert not policy.is_trusted("https://")
    assert not policy.is_trusted("https://[::1/registry.json")
    assert not policy.is_trusted(None)


def test_hostname_matching_is_case_insensitive():
    policy = TrustPolicy(["Example.COM"])
    assert policy.is_trusted("https://CDN.example.com/registry.json")
