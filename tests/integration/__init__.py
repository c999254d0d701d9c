# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Integration tests for the bundling pipeline.

Exercises the resolver, bundler, cache, configuration and source watcher
together against a sample JavaScript project on disk.
"""
