"""
Pytest fixtures for users listener tests.

Provides fixtures for starting/stopping:
- The listener as a subprocess, logging to a file
- The listener in-process on a background thread
"""
import os
import signal
import socket
import subprocess
import sys
import threading
import time
import atexit

import pytest

from users_server import make_server


SERVER_PORT = 13000

# Track all processes for cleanup
_all_processes = []


def cleanup_all_processes():
    """Kill all tracked processes on exit."""
    for process in _all_processes:
        if process.poll() is None:  # Process is still running
            stop_process(process)


atexit.register(cleanup_all_processes)


def stop_process(process: subprocess.Popen) -> None:
    try:
        os.killpg(os.getpgid(process.pid), signal.SIGTERM)
    except ProcessLookupError:
        pass
    try:
        process.wait(timeout=2)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()


def wait_for_port(port: int, timeout: int = 10) -> bool:
    """
    Wait for a port to be ready to accept connections.

    Args:
        port: Port number to check
        timeout: Maximum seconds to wait

    Returns:
        True if port becomes available, False if timeout
    """
    start_time = time.time()
    while time.time() - start_time < timeout:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.settimeout(1)
            if sock.connect_ex(('127.0.0.1', port)) == 0:
                return True
        time.sleep(0.1)
    return False


def start_listener(port: int, log_path) -> subprocess.Popen:
    """
    Start users_server.py on the given port.

    Args:
        port: Port number for the listener
        log_path: File receiving the listener's stdout

    Returns:
        Popen process object
    """
    # Get the project root directory (parent of tests/)
    project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    script = os.path.join(project_root, "users_server.py")

    with open(log_path, "w") as log_file:
        process = subprocess.Popen(
            [sys.executable, script, "--host", "127.0.0.1", "--port", str(port)],
            stdin=subprocess.DEVNULL,
            stdout=log_file,
            stderr=subprocess.STDOUT,
            close_fds=True,
            start_new_session=True,
            cwd=project_root,
        )

    # Track for cleanup
    _all_processes.append(process)

    if not wait_for_port(port, timeout=10):
        stop_process(process)
        raise RuntimeError(f"Listener failed to start on port {port}")

    return process


@pytest.fixture(scope="module")
def server_log(tmp_path_factory):
    """Path of the log file the module's listener writes to."""
    return tmp_path_factory.mktemp("listener") / "users.log"


@pytest.fixture(scope="module")
def server(server_log) -> str:
    """
    Start the listener as a subprocess.

    Yields:
        URL of the listener (e.g., "http://127.0.0.1:13000")
    """
    process = start_listener(SERVER_PORT, server_log)

    try:
        yield f"http://127.0.0.1:{SERVER_PORT}"
    finally:
        stop_process(process)


@pytest.fixture
def inproc_server() -> str:
    """
    Serve the handler from a background thread on an ephemeral port.

    Yields:
        URL of the listener
    """
    httpd = make_server("127.0.0.1", 0)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()

    try:
        yield f"http://127.0.0.1:{httpd.server_address[1]}"
    finally:
        httpd.shutdown()
        httpd.server_close()
        thread.join(timeout=2)
