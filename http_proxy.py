"""Forwarding proxy relaying GET requests to origin servers."""

from rawhttp.bootstrap.cli import run_proxy

if __name__ == "__main__":
    run_proxy()
