"""File server serving and accepting whitelisted file types."""

from rawhttp.bootstrap.cli import run_file_server

if __name__ == "__main__":
    run_file_server()
