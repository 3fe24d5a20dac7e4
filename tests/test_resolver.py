#!/usr/bin/env python

import os
import unittest
from unittest import mock

from requests.exceptions import ConnectionError

from testsupport import FakeResponse, FakeSession, ToolchainTest
from testsupport import make_tar_gz, toolchain_xml, write_registry

from jtoolchain.catalog import Catalog
from jtoolchain.error import MisconfiguredToolchainError, ResolutionError, SubprocessError, ToolchainError
from jtoolchain.jbang import JBang
from jtoolchain.model import FAILED, MATCHED_EXISTING, PROVISIONED
from jtoolchain.model import ORIGIN_CATALOG, ORIGIN_EXISTING, ORIGIN_JBANG
from jtoolchain.model import PackageMatch, ToolchainRequirement
from jtoolchain.registry import ToolchainRegistry
from jtoolchain.resolver import ToolchainResolver
from jtoolchain.tools import Tools


URI = "https://catalog.example.com/disco/v3.0"
PKG_INFO_URI = URI + "/ids/4711"
DOWNLOAD_URI = "https://download.example.com/OpenJDK17U-jdk_x64_linux.tar.gz"
FILENAME = "OpenJDK17U-jdk_x64_linux.tar.gz"


def jdk(**params):
    return ToolchainRequirement("jdk", params)


class ResolverTest(ToolchainTest):
    """ Resolution against fake catalog and download servers. """

    def setUp(self):
        super().setUp()
        self.jdksdir = self.path("jdks")
        self.registry = ToolchainRegistry(self.path("toolchains.xml"))
        self.session = FakeSession()

    def resolver(self, archive_files=None, catalog=None, jbang=None, tools=None):
        if archive_files is not None:
            archive = make_tar_gz(self.path("archive.tar.gz"), archive_files)
            with open(archive, "rb") as f:
                content = f.read()
            self.session.routes.update({
                URI + "/packages": FakeResponse(json={
                    "result": [{"filename": FILENAME, "links": {"pkg_info_uri": PKG_INFO_URI}}]}),
                PKG_INFO_URI: FakeResponse(json={"result": [{"direct_download_uri": DOWNLOAD_URI}]}),
                DOWNLOAD_URI: FakeResponse(content=content),
            })
        tools = tools or Tools(session=self.session, cwd=self.ws)
        return ToolchainResolver(
            registry=self.registry,
            catalog=catalog or Catalog(self.session, URI, system="Linux", machine="x86_64"),
            tools=tools,
            jbang=jbang or JBang(tools, home=self.path("jbang")),
            jdksdir=self.jdksdir)

    def test_existing_toolchain(self):
        jdk11 = self.makedirs("installed", "jdk-11")
        jdk17 = self.makedirs("installed", "jdk-17")
        write_registry(self.registry.path, [
            toolchain_xml("jdk", {"version": "11", "vendor": "zulu"}, jdk11),
            toolchain_xml("jdk", {"version": "17", "vendor": "zulu"}, jdk17),
        ])

        resolver = self.resolver()
        context = resolver.resolve([jdk(version="17")])

        self.assertEqual(resolver.states, {"jdk": MATCHED_EXISTING})
        self.assertEqual(context.get("jdk").jdk_home, jdk17)
        self.assertEqual(context.get("jdk").origin, ORIGIN_EXISTING)
        self.assertEqual(self.session.requests, [])

    def test_first_match_in_registry_order(self):
        first = self.makedirs("installed", "first")
        second = self.makedirs("installed", "second")
        write_registry(self.registry.path, [
            toolchain_xml("jdk", {"version": "17.0.1", "vendor": "zulu"}, first),
            toolchain_xml("jdk", {"version": "17.0.2", "vendor": "zulu"}, second),
        ])

        context = self.resolver().resolve([jdk(version="[17,18)", vendor="ZULU")])
        self.assertEqual(context.get("jdk").jdk_home, first)

    def test_multiple_types(self):
        jdk17 = self.makedirs("installed", "jdk-17")
        write_registry(self.registry.path, [
            toolchain_xml("protobuf", {"version": "3.21"}),
            toolchain_xml("jdk", {"version": "17"}, jdk17),
        ])

        context = self.resolver().resolve([
            jdk(version="17"), ToolchainRequirement("protobuf", {"version": "3.21"})])
        self.assertEqual(sorted(context.types()), ["jdk", "protobuf"])
        self.assertEqual(context.get("protobuf").version, "3.21")

    def test_provision_from_catalog(self):
        resolver = self.resolver({
            "./jdk-17.0.2+8/bin/java": b"#!/bin/sh\n",
            "./jdk-17.0.2+8/release": b"JAVA_VERSION=\"17.0.2\"\n",
        })
        context = resolver.resolve([jdk(version="17", vendor="temurin")])

        home = self.path("jdks", "jdk-17.0.2+8")
        self.assertEqual(resolver.states, {"jdk": PROVISIONED})
        self.assertEqual(context.get("jdk").jdk_home, home)
        self.assertEqual(context.get("jdk").origin, ORIGIN_CATALOG)
        self.assertTrue(os.path.isfile(os.path.join(home, "bin", "java")))
        self.assertFalse(os.path.exists(os.path.join(self.jdksdir, FILENAME)))

        entries = self.registry.entries()
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].provides, {"version": "17", "vendor": "temurin"})
        self.assertEqual(entries[0].configuration, {"jdkHome": home})

        _, params, _ = self.session.requests[0]
        self.assertIn(("distribution", "temurin"), params)
        self.assertIn(("version", "17"), params)

    def test_provisioned_toolchain_is_reused(self):
        self.resolver({"jdk-17/bin/java": b""}).resolve([jdk(version="17")])
        requests = len(self.session.requests)

        resolver = self.resolver()
        context = resolver.resolve([jdk(version="17")])
        self.assertEqual(resolver.states, {"jdk": MATCHED_EXISTING})
        self.assertEqual(context.get("jdk").jdk_home, self.path("jdks", "jdk-17"))
        self.assertEqual(len(self.session.requests), requests)

    def test_default_vendor(self):
        self.resolver({"jdk-17/bin/java": b""}).resolve([jdk(version="17")])

        _, params, _ = self.session.requests[0]
        self.assertIn(("distribution", "oracle_open_jdk"), params)
        self.assertEqual(self.registry.entries()[0].provides["vendor"], "oracle_open_jdk")

    def test_macos_bundle_layout(self):
        resolver = self.resolver({"jdk-17.jdk/Contents/Home/bin/java": b""})
        context = resolver.resolve([jdk(version="17")])
        self.assertEqual(
            context.get("jdk").jdk_home,
            self.path("jdks", "jdk-17.jdk", "Contents", "Home"))

    def test_catalog_without_package(self):
        self.session.routes[URI + "/packages"] = FakeResponse(json={"result": []})
        resolver = self.resolver()

        with self.assertRaises(ResolutionError) as cm:
            resolver.resolve([jdk(version="42")])

        self.assertEqual(resolver.states, {"jdk": FAILED})
        self.assertEqual(cm.exception.requirements, [jdk(version="42")])
        message = str(cm.exception)
        self.assertIn("jdk [ version='42' ]", message)
        self.assertIn(self.registry.path, message)
        self.assertFalse(os.path.exists(self.registry.path))

    def test_failures_are_aggregated(self):
        self.session.routes[URI + "/packages"] = FakeResponse(json={"result": []})
        resolver = self.resolver()

        with self.assertRaises(ResolutionError) as cm:
            resolver.resolve([jdk(version="42"), ToolchainRequirement("protobuf")])

        self.assertEqual(resolver.states, {"jdk": FAILED, "protobuf": FAILED})
        self.assertIn("jdk [ version='42' ]", str(cm.exception))
        self.assertIn("protobuf [ any ]", str(cm.exception))

    def test_other_types_are_not_provisioned(self):
        catalog = mock.Mock()
        with self.assertRaises(ResolutionError):
            self.resolver(catalog=catalog).resolve([ToolchainRequirement("protobuf")])
        catalog.find_package.assert_not_called()

    def test_download_failure(self):
        self.session.routes.update({
            URI + "/packages": FakeResponse(json={
                "result": [{"filename": FILENAME, "links": {"pkg_info_uri": PKG_INFO_URI}}]}),
            PKG_INFO_URI: FakeResponse(json={"result": [{"direct_download_uri": DOWNLOAD_URI}]}),
            DOWNLOAD_URI: ConnectionError("connection reset"),
        })
        resolver = self.resolver()

        with self.assertRaises(ResolutionError):
            resolver.resolve([jdk(version="17")])
        self.assertEqual(os.listdir(self.jdksdir), [])

    def test_corrupt_archive(self):
        self.session.routes.update({
            URI + "/packages": FakeResponse(json={
                "result": [{"filename": FILENAME, "links": {"pkg_info_uri": PKG_INFO_URI}}]}),
            PKG_INFO_URI: FakeResponse(json={"result": [{"direct_download_uri": DOWNLOAD_URI}]}),
            DOWNLOAD_URI: FakeResponse(content=b"not a tarball"),
        })
        resolver = self.resolver()

        with self.assertRaises(ResolutionError) as cm:
            resolver.resolve([jdk(version="17")])
        self.assertEqual(resolver.states, {"jdk": FAILED})
        self.assertEqual(cm.exception.requirements, [jdk(version="17")])
        self.assertFalse(os.path.exists(self.registry.path))

    def test_extraction_failure(self):
        tools = Tools(session=self.session, cwd=self.ws)
        resolver = self.resolver({"./jdk-17/bin/java": b""}, tools=tools)

        with mock.patch.object(tools, "extract", side_effect=ToolchainError("disk full")):
            with self.assertRaises(ResolutionError) as cm:
                resolver.resolve([jdk(version="17")])
        self.assertEqual(resolver.states, {"jdk": FAILED})
        self.assertIn("jdk [ version='17' ]", str(cm.exception))
        self.assertFalse(os.path.exists(self.registry.path))

    def test_registry_write_failure(self):
        with open(self.path("file"), "w") as f:
            f.write("not a directory")
        self.registry = ToolchainRegistry(self.path("file", "toolchains.xml"))
        resolver = self.resolver({"./jdk-17/bin/java": b""})

        with self.assertRaises(ResolutionError) as cm:
            resolver.resolve([jdk(version="17")])
        self.assertEqual(resolver.states, {"jdk": FAILED})
        self.assertEqual(cm.exception.requirements, [jdk(version="17")])
        self.assertIn(self.registry.path, str(cm.exception))
        self.assertTrue(os.path.isfile(self.path("jdks", "jdk-17", "bin", "java")))
        self.assertEqual(len(resolver.context), 0)

    def test_invalid_content_length(self):
        resolver = self.resolver({"./jdk-17/bin/java": b""})
        content = self.session.routes[DOWNLOAD_URI].content
        self.session.routes[DOWNLOAD_URI] = FakeResponse(content=content, headers={"content-length": "unknown"})

        resolver.resolve([jdk(version="17")])
        self.assertEqual(resolver.states, {"jdk": PROVISIONED})

    def test_jdk_type_ignores_case(self):
        requirement = ToolchainRequirement("JDK", {"version": "17"})
        resolver = self.resolver({"./jdk-17/bin/java": b""})

        context = resolver.resolve([requirement])
        self.assertEqual(resolver.states, {"JDK": PROVISIONED})
        self.assertEqual(context.get("jdk").jdk_home, self.path("jdks", "jdk-17"))

    def test_catalog_unreachable(self):
        self.session.routes[URI + "/packages"] = ConnectionError("connection refused")
        with self.assertRaises(ResolutionError):
            self.resolver().resolve([jdk(version="17")])

    def test_misconfigured_registry_is_fatal(self):
        write_registry(self.registry.path, [toolchain_xml("jdk", {"version": "17"})])
        catalog = mock.Mock()

        with self.assertRaises(MisconfiguredToolchainError):
            self.resolver(catalog=catalog).resolve([jdk(version="17")])
        catalog.find_package.assert_not_called()

    def test_skip(self):
        self.registry = mock.Mock()
        context = self.resolver().resolve([jdk(version="17")], skip=True)
        self.assertEqual(len(context), 0)
        self.registry.toolchains_for_type.assert_not_called()

    def test_no_requirements(self):
        context = self.resolver().resolve([], skip=False)
        self.assertEqual(len(context), 0)


class JBangResolverTest(ToolchainTest):

    def setUp(self):
        super().setUp()
        self.registry = ToolchainRegistry(self.path("toolchains.xml"))
        self.catalog = mock.Mock()
        self.catalog.find_package.return_value = None
        self.tools = mock.Mock()

    def resolver(self, jbang):
        return ToolchainResolver(
            registry=self.registry,
            catalog=self.catalog,
            tools=self.tools,
            jbang=jbang,
            jdksdir=self.path("jdks"))

    def test_provision_from_jbang(self):
        home = self.makedirs("jbang", "cache", "jdks", "17")
        resolver = self.resolver(JBang(self.tools, home=self.path("jbang")))

        context = resolver.resolve([jdk(version="17.0.2")])

        self.assertEqual(resolver.states, {"jdk": PROVISIONED})
        self.assertEqual(context.get("jdk").jdk_home, home)
        self.assertEqual(context.get("jdk").origin, ORIGIN_JBANG)
        self.assertEqual(self.registry.entries()[0].configuration, {"jdkHome": home})
        self.catalog.find_package.assert_not_called()

    def test_jbang_only_for_default_vendor(self):
        jbang = mock.Mock()
        jbang.available.return_value = True

        with self.assertRaises(ResolutionError):
            self.resolver(jbang).resolve([jdk(version="17", vendor="temurin")])
        jbang.find_jdk.assert_not_called()
        self.catalog.find_package.assert_called_once_with("17", "temurin")

    def test_jbang_default_vendor_ignores_case(self):
        jbang = mock.Mock()
        jbang.available.return_value = True
        jbang.find_jdk.return_value = self.makedirs("jbang", "cache", "jdks", "21")

        context = self.resolver(jbang).resolve([jdk(version="21", vendor="Oracle_Open_JDK")])
        self.assertEqual(context.get("jdk").origin, ORIGIN_JBANG)

    def test_jbang_unavailable(self):
        jbang = mock.Mock()
        jbang.available.return_value = False

        with self.assertRaises(ResolutionError):
            self.resolver(jbang).resolve([jdk(version="17")])
        jbang.find_jdk.assert_not_called()
        self.catalog.find_package.assert_called_once_with("17", "oracle_open_jdk")

    def test_jbang_failure_falls_through(self):
        jbang = mock.Mock()
        jbang.available.return_value = True
        jbang.find_jdk.side_effect = SubprocessError("Command failed: jbang jdk install 17")

        with self.assertRaises(ResolutionError):
            self.resolver(jbang).resolve([jdk(version="17")])
        self.catalog.find_package.assert_called_once_with("17", "oracle_open_jdk")


class GraalVMResolverTest(ToolchainTest):

    def setUp(self):
        super().setUp()
        self.registry = ToolchainRegistry(self.path("toolchains.xml"))
        self.catalog = mock.Mock()
        self.catalog.find_package.return_value = PackageMatch("graalvm.tar.gz", "https://example.com/graalvm.tar.gz")
        self.tools = mock.MagicMock()
        self.tools.ensure_downloaded.return_value = self.path("jdks", "graalvm.tar.gz")
        self.tools.archive_root.return_value = "graalvm-community-21"
        self.tools.expand_path.side_effect = lambda path: path
        self.jbang = mock.Mock()
        self.jbang.available.return_value = False

    def resolve(self):
        resolver = ToolchainResolver(
            registry=self.registry,
            catalog=self.catalog,
            tools=self.tools,
            jbang=self.jbang,
            jdksdir=self.path("jdks"))
        return resolver.resolve([jdk(version="21", vendor="graalvm_community")])

    def test_native_image_is_installed(self):
        context = self.resolve()

        home = self.path("jdks", "graalvm-community-21")
        gu = os.path.join(home, "bin", "gu.cmd" if os.name == "nt" else "gu")
        self.assertEqual(context.get("jdk").jdk_home, home)
        self.tools.environ.assert_called_once_with(GRAALVM_HOME=home)
        self.tools.spawn.assert_called_once_with([gu, "install", "native-image", "--ignore"])

    def test_native_image_failure_is_ignored(self):
        self.tools.spawn.side_effect = SubprocessError("Command failed to start: gu")
        context = self.resolve()
        self.assertEqual(context.get("jdk").origin, ORIGIN_CATALOG)


if __name__ == "__main__":
    unittest.main()
