import json
import os
import tempfile
import unittest

from beam_core.config import BeamSettings, NodeDescriptor, NodeDirectory
from beam_core.errors import ConfigurationError


class DirectoryFileMixin:
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self._tmp.name, "access-nodes.json")

    def tearDown(self):
        self._tmp.cleanup()

    def write(self, payload):
        with open(self.path, "w", encoding="utf-8") as stream:
            if isinstance(payload, str):
                stream.write(payload)
            else:
                json.dump(payload, stream)


class TestNodeDirectory(DirectoryFileMixin, unittest.TestCase):
    def test_loads_descriptors_in_file_order(self):
        self.write([
            {"StartHeight": 0, "EndHeight": 99, "Address": "legacy:9000", "IsLegacy": True},
            {"startHeight": 100, "endHeight": 0, "address": "current:9000", "isLegacy": False},
        ])
        nodes = NodeDirectory(self.path).load()
        self.assertEqual(nodes, [
            NodeDescriptor(0, 99, "legacy:9000", True),
            NodeDescriptor(100, 0, "current:9000", False),
        ])
        self.assertTrue(nodes[1].is_unbounded)

    def test_snake_case_keys_and_defaults(self):
        self.write([{"start_height": 7, "address": "a:1"}])
        self.assertEqual(NodeDirectory(self.path).load(), [NodeDescriptor(7, 0, "a:1", False)])

    def test_reload_picks_up_changes(self):
        print("\nTesting NodeDirectory: reload on every load()")
        directory = NodeDirectory(self.path)
        self.write([{"StartHeight": 0, "Address": "old:9000"}])
        self.assertEqual(directory.load()[0].address, "old:9000")
        self.write([{"StartHeight": 0, "Address": "new:9000"}])
        self.assertEqual(directory.load()[0].address, "new:9000")
        print("  -> second load() saw the edited file")

    def test_missing_file(self):
        with self.assertRaises(ConfigurationError):
            NodeDirectory(self.path).load()

    def test_invalid_json(self):
        self.write("[{not json")
        with self.assertRaises(ConfigurationError):
            NodeDirectory(self.path).load()

    def test_document_must_be_array(self):
        self.write({"StartHeight": 0, "Address": "a:1"})
        with self.assertRaises(ConfigurationError):
            NodeDirectory(self.path).load()

    def test_entry_must_be_object(self):
        self.write(["a:1"])
        with self.assertRaises(ConfigurationError):
            NodeDirectory(self.path).load()

    def test_address_required(self):
        self.write([{"StartHeight": 0, "EndHeight": 10}])
        with self.assertRaises(ConfigurationError) as cm:
            NodeDirectory(self.path).load()
        self.assertIn("address", str(cm.exception))

    def test_heights_must_be_uint64_integers(self):
        for bad in (-1, 2 ** 64, "10", 1.5, True):
            self.write([{"StartHeight": bad, "Address": "a:1"}])
            with self.assertRaises(ConfigurationError):
                NodeDirectory(self.path).load()

    def test_overlaps_allowed_by_default(self):
        self.write([
            {"StartHeight": 0, "EndHeight": 100, "Address": "a:1"},
            {"StartHeight": 50, "EndHeight": 150, "Address": "b:1"},
        ])
        self.assertEqual(len(NodeDirectory(self.path).load()), 2)

    def test_strict_rejects_overlap(self):
        self.write([
            {"StartHeight": 0, "EndHeight": 100, "Address": "a:1"},
            {"StartHeight": 50, "EndHeight": 150, "Address": "b:1"},
        ])
        with self.assertRaises(ConfigurationError):
            NodeDirectory(self.path, strict=True).load()

    def test_strict_rejects_unbounded_followed_by_node(self):
        self.write([
            {"StartHeight": 0, "EndHeight": 0, "Address": "a:1"},
            {"StartHeight": 50, "EndHeight": 0, "Address": "b:1"},
        ])
        with self.assertRaises(ConfigurationError):
            NodeDirectory(self.path, strict=True).load()

    def test_strict_accepts_chain(self):
        self.write([
            {"StartHeight": 100, "EndHeight": 0, "Address": "b:1"},
            {"StartHeight": 0, "EndHeight": 99, "Address": "a:1"},
        ])
        self.assertEqual(len(NodeDirectory(self.path, strict=True).load()), 2)

    def test_describe(self):
        self.write([{"StartHeight": 0, "EndHeight": 99, "Address": "a:1", "IsLegacy": True}])
        self.assertEqual(NodeDirectory(self.path).describe(), ["0 - 99: a:1 (Legacy=1)"])

    def test_from_env(self):
        self.write([{"StartHeight": 0, "Address": "a:1"}])
        directory = NodeDirectory.from_env({"ACCESS_NODES": self.path})
        self.assertEqual(len(directory.load()), 1)
        with self.assertRaises(ConfigurationError):
            NodeDirectory.from_env({})


class TestBeamSettings(unittest.TestCase):
    def test_defaults(self):
        settings = BeamSettings.from_dict(None)
        self.assertEqual(settings.log_level, "INFO")
        self.assertEqual(settings.max_receive_message_length, 50 * 1024 * 1024)
        self.assertFalse(settings.strict_coverage)
        self.assertFalse(settings.debug)

    def test_from_env(self):
        settings = BeamSettings.from_env({
            "ACCESS_NODES": "/etc/beam/nodes.json",
            "APP_LOG_LEVEL": "debug",
            "BEAM_MAX_RECEIVE_MB": "8",
            "BEAM_STRICT_COVERAGE": "true",
        })
        self.assertEqual(settings.access_nodes_path, "/etc/beam/nodes.json")
        self.assertTrue(settings.debug)
        self.assertEqual(settings.max_receive_message_length, 8 * 1024 * 1024)
        self.assertTrue(settings.strict_coverage)

    def test_unknown_log_level(self):
        with self.assertRaises(ConfigurationError):
            BeamSettings.from_env({"APP_LOG_LEVEL": "chatty"})

    def test_settings_without_path_cannot_build_directory(self):
        with self.assertRaises(ConfigurationError):
            NodeDirectory.from_settings(BeamSettings())


if __name__ == '__main__':
    unittest.main()
