import unittest

from shared.startup_profile import (
    ROLE_CONTROLLER,
    ROLE_NODE,
    StartupProfile,
    validate_controller_profile,
    validate_node_profile,
)


class TestStartupProfile(unittest.TestCase):
    def test_valid_profiles(self):
        validate_controller_profile(StartupProfile(ROLE_CONTROLLER, "0.0.0.0", 8011), "/var/lib/volplugin")
        validate_node_profile(StartupProfile(ROLE_NODE, "0.0.0.0", 8012), "node-1", "/var/lib/volplugin", 8011)

    def test_wrong_role(self):
        with self.assertRaises(ValueError):
            validate_controller_profile(StartupProfile(ROLE_NODE, "0.0.0.0", 8011), "/root")

    def test_bad_port(self):
        with self.assertRaises(ValueError):
            validate_controller_profile(StartupProfile(ROLE_CONTROLLER, "0.0.0.0", 70000), "/root")

    def test_node_port_conflict(self):
        with self.assertRaises(ValueError):
            validate_node_profile(StartupProfile(ROLE_NODE, "0.0.0.0", 8011), "node-1", "/root", 8011)

    def test_node_id_checks(self):
        with self.assertRaises(ValueError):
            validate_node_profile(StartupProfile(ROLE_NODE, "0.0.0.0", 8012), "", "/root", 8011)
        with self.assertRaises(ValueError):
            validate_node_profile(StartupProfile(ROLE_NODE, "0.0.0.0", 8012), "../node", "/root", 8011)


if __name__ == "__main__":
    unittest.main()
