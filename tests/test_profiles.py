"""
Tests for the OS profile resolver — platform table, defaults and rejection.
"""

import pytest

from trustctl.core.platform.profiles import (
    PLATFORM_RULES,
    PlatformRule,
    UnsupportedPlatform,
    parse_major,
    resolve_profile,
    supported_families,
)

# (family, name, release) → expected (dir, group, mode, update, package, ext)
SUPPORTED = [
    (("Debian", "Debian", "12"),
     ("/usr/local/share/ca-certificates", "staff", "2665",
      ("update-ca-certificates",), "ca-certificates", "crt")),
    (("Debian", "Ubuntu", "22.04"),
     ("/usr/local/share/ca-certificates", "staff", "0755",
      ("update-ca-certificates",), "ca-certificates", "crt")),
    (("RedHat", "CentOS", "6"),
     ("/etc/pki/ca-trust/source/anchors", "root", "0755",
      ("update-ca-trust", "extract"), "ca-certificates", "crt")),
    (("RedHat", "RedHat", "9"),
     ("/etc/pki/ca-trust/source/anchors", "root", "0755",
      ("update-ca-trust", "extract"), "ca-certificates", "crt")),
    (("Archlinux", "Archlinux", "rolling"),
     ("/etc/ca-certificates/trust-source/anchors/", "root", "0755",
      ("trust", "extract-compat"), "ca-certificates", "crt")),
    (("Suse", "SLES", "11"),
     ("/etc/ssl/certs", "root", "0755", ("c_rehash",), "openssl-certs", "pem")),
    (("Suse", "SLES", "9"),
     ("/etc/ssl/certs", "root", "0755", ("c_rehash",), "openssl-certs", "pem")),
    (("Suse", "SLES", "10"),
     ("/etc/ssl/certs", "root", "0755", ("c_rehash",), "openssl-certs", "pem")),
    (("Suse", "SLES", "15"),
     ("/etc/pki/trust/anchors", "root", "0755",
      ("update-ca-certificates",), "ca-certificates", "crt")),
    (("AIX", "AIX", "7"),
     ("/var/ssl/certs", "system", "0755", ("/usr/bin/c_rehash",), "ca-certificates", "crt")),
    (("Solaris", "Solaris", "11"),
     ("/etc/certs/CA/", "sys", "0755",
      ("/usr/sbin/svcadm", "restart", "/system/ca-certificates"), "ca-certificates", "pem")),
]


class TestResolveSupported:
    @pytest.mark.parametrize("platform,expected", SUPPORTED)
    def test_table(self, platform, expected):
        profile = resolve_profile(*platform)
        assert (
            profile.trusted_cert_dir,
            profile.dir_group,
            profile.dir_mode,
            profile.update_command,
            profile.package_name,
            profile.cert_file_extension,
        ) == expected
        assert profile.dir_owner == "root"
        assert profile.update_command_path == ("/usr/sbin", "/usr/bin", "/bin")

    @pytest.mark.parametrize("platform,_expected", SUPPORTED)
    def test_deterministic(self, platform, _expected):
        assert resolve_profile(*platform) == resolve_profile(*platform)

    def test_family_case_insensitive(self):
        assert resolve_profile("redhat", "CentOS", "7").family == "RedHat"

    def test_full_release_string(self):
        profile = resolve_profile("RedHat", "CentOS", "6.10")
        assert profile.major_version == "6"
        assert profile.requires_legacy_enable


class TestLegacyEnableFlag:
    @pytest.mark.parametrize("release", ["5", "6"])
    def test_redhat_below_7(self, release):
        profile = resolve_profile("RedHat", "RedHat", release)
        assert profile.requires_legacy_enable
        assert profile.enable_command() == ("update-ca-trust", "enable")
        assert profile.enable_command(force=True) == ("update-ca-trust", "force-enable")
        assert profile.legacy_check_command == ("update-ca-trust", "check")

    @pytest.mark.parametrize("release", ["7", "8", "9"])
    def test_redhat_7_and_later(self, release):
        profile = resolve_profile("RedHat", "RedHat", release)
        assert not profile.requires_legacy_enable
        assert profile.enable_command(force=True) == ()

    def test_other_families_never_need_it(self):
        for family, name, release in [("Debian", "Debian", "8"), ("Suse", "SLES", "11")]:
            assert not resolve_profile(family, name, release).requires_legacy_enable


class TestUnsupported:
    def test_unknown_family(self):
        with pytest.raises(UnsupportedPlatform, match=r"Unsupported osfamily \(WeirdOS\) or unsupported version \(242\)"):
            resolve_profile("WeirdOS", "WeirdOS", "242")

    def test_solaris_10(self):
        with pytest.raises(UnsupportedPlatform, match=r"Unsupported osfamily \(Solaris\) or unsupported version \(10\)"):
            resolve_profile("Solaris", "Solaris", "10")

    def test_carries_both_values(self):
        with pytest.raises(UnsupportedPlatform) as exc:
            resolve_profile("Solaris", "Solaris", "9")
        assert exc.value.family == "Solaris"
        assert exc.value.version == "9"

    def test_non_numeric_version_for_numeric_rule(self):
        with pytest.raises(UnsupportedPlatform):
            resolve_profile("Suse", "SLES", "tumbleweed")


class TestTable:
    def test_parse_major(self):
        assert parse_major("7.9") == 7
        assert parse_major(11) == 11
        assert parse_major("rolling") is None
        assert parse_major(None) is None

    def test_supported_families(self):
        assert supported_families() == [
            "Debian", "RedHat", "Archlinux", "Suse", "AIX", "Solaris",
        ]

    def test_custom_rules_apply_defaults(self):
        rules = (
            PlatformRule("Gentoo", lambda name, major: True, {"trusted_cert_dir": "/usr/local/share/ca-certificates"}),
            *PLATFORM_RULES,
        )
        profile = resolve_profile("Gentoo", "Gentoo", "2.14", rules=rules)
        assert profile.dir_group == "root"
        assert profile.dir_mode == "0755"
        assert profile.update_command == ("update-ca-certificates",)
        assert profile.package_name == "ca-certificates"

    def test_cert_path(self):
        profile = resolve_profile("Solaris", "Solaris", "11")
        assert profile.cert_path("ca1") == "/etc/certs/CA/ca1.pem"
