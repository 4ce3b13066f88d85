#!/usr/bin/env python3
"""Smoke-test postback delivery against a real postback endpoint.

This script:
1. Starts a debug postback session pointed at PAGEONE_POSTBACK_URL
2. Runs a throwaway tracker through install, first note and active user
3. Flushes postbacks and prints each response

State is kept in memory, so every run behaves like a fresh install.
"""

import logging
import os
import sys

from pageone.attribution import (
    ConversionTracker,
    InMemoryStateStore,
    NoteActivityReporter,
    TrackerConfig,
    resolve_sink,
)
from pageone.attribution.debug_session import PostbackDebugSession, SimulatedPostback
from pageone.attribution.impressions import (
    DevelopmentImpression,
    DevelopmentImpressionStarter,
    build_development_jws,
    generate_development_key,
)


def build_session(postback_url):
    """Create a debug session with a single postback."""
    postback = SimulatedPostback(
        postback_url=postback_url,
        source_domain=os.getenv("PAGEONE_SOURCE_DOMAIN"),
    )
    return PostbackDebugSession(postbacks=[postback])


def run_events(session, config):
    """Drive a tracker through the main conversion events."""
    print("=" * 60)
    print("Reporting conversion events")
    print("=" * 60)

    tracker = ConversionTracker(
        store=InMemoryStateStore(),
        sink=resolve_sink(session),
        policy=config.build_policy(),
    )
    reporter = NoteActivityReporter.from_config(config, tracker)

    starter = DevelopmentImpressionStarter(
        session,
        on_started=lambda: reporter.note_created(total_notes=1),
    )
    starter.start(DevelopmentImpression(advertised_app_store_item_identifier=6747420629))

    reporter.note_edited()
    reporter.active_user_threshold_reached()

    for update in session.updates:
        print(f"  value={update.fine_value:<3} coarse={update.coarse_value:<7} lock={update.lock_window}")


def show_jws():
    """Print a development JWS signed with a throwaway key."""
    print("\n" + "=" * 60)
    print("Development impression JWS")
    print("=" * 60)

    jws = build_development_jws(generate_development_key(), 6747420629)
    print(f"  {jws[:120]}...")


def flush(session):
    """Deliver postbacks and print the responses."""
    print("\n" + "=" * 60)
    print("Flushing postbacks")
    print("=" * 60)

    for response in session.flush_postbacks():
        status = "OK" if response.ok else "FAILED"
        detail = response.status_code if response.status_code is not None else response.error
        print(f"  {status:7} {response.url} ({detail})")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    config = TrackerConfig.from_env()
    if not config.postback_url:
        print("PAGEONE_POSTBACK_URL is required")
        sys.exit(1)

    print("PageOne - Postback Smoke Test")
    print("=" * 60)

    with build_session(config.postback_url) as session:
        run_events(session, config)
        show_jws()
        flush(session)
        print(f"\nDiagnostics: {session.diagnostics()}")
