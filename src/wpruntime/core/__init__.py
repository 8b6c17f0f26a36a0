"""Core building blocks: ports, binaries, versions, compatibility, provisioning."""
