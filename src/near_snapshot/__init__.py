"""Snapshot NEAR on-chain state and rebuild sandbox repro inputs."""
