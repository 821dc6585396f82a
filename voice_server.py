#!/usr/bin/env python3
"""
Voice App Builder - web server

Talk through an app idea with the voice agent; once you approve the spec it
reads back, the project is generated and served as a local preview.

Endpoints:
- WS   /ws                              browser audio + control channel
- GET  /                                service description
- GET  /api/health                      liveness, provider status
- GET  /api/sessions                    generation runs
- GET  /api/sessions/<id>               one run
- GET  /api/sessions/<id>/tree          generated file tree
- POST /api/sessions/<id>/stop          cancel a run or stop its preview
- GET  /download/<id>                   ZIP of the generated project

Run:
    python3 voice_server.py

Then connect the voice client to: ws://localhost:3000/ws
"""

import asyncio
import atexit
import io
import sys
import logging
import threading
import zipfile
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, send_file
from flask_sock import Sock

sys.path.insert(0, str(Path(__file__).parent))

from voice_creation import __version__
from voice_creation.builders.codegen_builder import CodeGenerationOrchestrator
from voice_creation.builders.workspace import is_valid_session_id, repo_dir
from voice_creation.channels import BrowserSocketChannel
from voice_creation.config import AppConfig
from voice_creation.sessions import SessionRegistry
from voice_creation.voice import SpeechAgentClient, VoiceSession

load_dotenv()

logger = logging.getLogger("voice_server")

config = AppConfig.from_env()

app = Flask(__name__)
sock = Sock(app)

# Generation runs by session id, shared by every connection
registry = SessionRegistry(ttl_seconds=config.session_ttl_seconds)

_orchestrator: Optional[CodeGenerationOrchestrator] = None
_orchestrator_lock = threading.Lock()

# One event loop for every voice session; previews outlive their browser socket
_loop: Optional[asyncio.AbstractEventLoop] = None
_loop_lock = threading.Lock()


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def get_orchestrator() -> CodeGenerationOrchestrator:
    global _orchestrator
    with _orchestrator_lock:
        if _orchestrator is None:
            _orchestrator = CodeGenerationOrchestrator.from_config(config, registry=registry)
        return _orchestrator


def get_event_loop() -> asyncio.AbstractEventLoop:
    global _loop
    with _loop_lock:
        if _loop is None:
            _loop = asyncio.new_event_loop()
            thread = threading.Thread(target=_loop.run_forever, name="voice-sessions", daemon=True)
            thread.start()
        return _loop


def _not_found(message: str):
    return jsonify({'error': message}), 404


def _lookup(session_id: str):
    if not is_valid_session_id(session_id):
        return None
    registry.prune()
    return registry.get(session_id)


@app.route('/')
def index():
    """Describe the service."""
    return jsonify({
        'name': 'voice-creation',
        'version': __version__,
        'websocket': '/ws',
    })


@app.route('/api/health', methods=['GET'])
def health():
    """Liveness plus code generation provider status."""
    status = get_orchestrator().model.get_status()
    return jsonify({
        'status': 'ok',
        'codegen': status,
        'sessions': len(registry),
    })


@app.route('/api/sessions', methods=['GET'])
def list_sessions():
    registry.prune()
    return jsonify({'sessions': [record.to_dict() for record in registry.list()]})


@app.route('/api/sessions/<session_id>', methods=['GET'])
def get_session(session_id):
    record = _lookup(session_id)
    if record is None:
        return _not_found('Session not found')
    return jsonify(record.to_dict())


@app.route('/api/sessions/<session_id>/tree', methods=['GET'])
def session_tree(session_id):
    """File tree of the generated project."""
    record = _lookup(session_id)
    if record is None:
        return _not_found('Session not found')
    if record.file_tree is None:
        return _not_found('No files generated for this session')
    return jsonify(record.file_tree.to_dict())


@app.route('/api/sessions/<session_id>/stop', methods=['POST'])
def stop_session(session_id):
    """Cancel a running generation or stop its preview server."""
    if not is_valid_session_id(session_id) or not registry.stop(session_id):
        return _not_found('Session not found')
    return jsonify({'stopped': True})


@app.route('/download/<session_id>', methods=['GET'])
def download(session_id):
    """ZIP of the generated project directory."""
    if not is_valid_session_id(session_id):
        return _not_found('Project not found')

    repo = repo_dir(config.generation_root, session_id)
    if not repo.is_dir():
        return _not_found('Project not found')

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
        for path in sorted(repo.rglob('*')):
            if path.is_file():
                archive.write(path, path.relative_to(repo).as_posix())
    buffer.seek(0)

    return send_file(
        buffer,
        mimetype='application/zip',
        as_attachment=True,
        download_name=f'{session_id}.zip',
    )


@sock.route('/ws')
def voice_socket(ws):
    """One voice session per browser connection."""
    registry.prune()
    logger.info("🔌 Browser client connected")

    session = VoiceSession(
        BrowserSocketChannel(ws),
        SpeechAgentClient.from_config(config),
        get_orchestrator(),
    )
    future = asyncio.run_coroutine_threadsafe(session.run(), get_event_loop())
    try:
        future.result()
    except Exception:
        logger.exception("❌ Voice session crashed")
    logger.info("🔌 Browser client session ended")


def main():
    configure_logging(config.log_level)
    atexit.register(registry.stop_all)

    print(f"""
╔═══════════════════════════════════════════════════════════════╗
║     VOICE APP BUILDER                                          ║
╠═══════════════════════════════════════════════════════════════╣
║  Phase 1: Ideation - talk through your app idea               ║
║  Phase 2: Prompt Review - approve the generated spec          ║
║  Phase 3: Code Generation - project built and previewed       ║
╚═══════════════════════════════════════════════════════════════╝

Voice socket: ws://localhost:{config.port}/ws
Generated projects: {config.generation_root.resolve()}

Press Ctrl+C to stop the server.
    """)

    app.run(host=config.host, port=config.port, threaded=True)


if __name__ == '__main__':
    main()
