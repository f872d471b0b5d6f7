"""
Shared utilities for the plugin services.

This package contains functionality used by both the controller and node roles:
- errors: error kinds and exception hierarchy
- interfaces: Backend and Mounter collaborator interfaces
- file_backend / command_mounter: reference implementations of those interfaces
- plugin_client: HTTP client for the plugin RPCs
"""
