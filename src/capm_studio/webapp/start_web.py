#!/usr/bin/env python3
"""
Start the CAPM Studio Web Interface
"""

import sys
from typing import Optional

from ..config import StudioConfig
from ..llm_client import MultiLLMGenerator
from ..session import WorkspaceSession
from ..session_logger import configure_logging


def check_dependencies():
    """Check if required dependencies are installed."""
    try:
        import fastapi
        import uvicorn
        import websockets
        print("✅ All dependencies are installed")
        return True
    except ImportError as e:
        print(f"❌ Missing dependencies: {e}")
        print("\n🔧 To install dependencies, run:")
        print("   pip install -e .")
        print("\n📦 Or install manually:")
        print("   pip install fastapi uvicorn websockets python-dotenv")
        return False


def check_env(config: StudioConfig):
    """Check if at least one LLM provider key is available."""
    found = [name for name, key in (
        ("OpenAI", config.openai_api_key),
        ("Anthropic", config.anthropic_api_key),
        ("OpenRouter", config.openrouter_api_key),
    ) if key]
    if found:
        print(f"✅ API keys found: {', '.join(found)}")
        return True
    print("⚠️  No LLM API key found")
    print("\n🔑 Please set at least one API key:")
    print("   1. Create a .env file with: ANTHROPIC_API_KEY=your_key_here")
    print("   2. Or set environment variable: export OPENAI_API_KEY=your_key_here")
    print("   3. OPENROUTER_API_KEY works too")
    return False


def start_server(config: StudioConfig, project_name: Optional[str] = None, template: Optional[str] = None,
                 session: Optional[WorkspaceSession] = None):
    """Create the app around a session and serve it with uvicorn (blocking)."""
    import uvicorn
    from .web_interface import create_app

    if session is None:
        session = WorkspaceSession(generator=MultiLLMGenerator(config), config=config)
        if project_name:
            session.create_project(project_name, template or "basic")

    print("\n🌐 Starting web interface...")
    print(f"📍 URL: http://localhost:{config.port}")
    print("💡 Tip: Keep this terminal open while using the web interface")
    print("🛑 Press Ctrl+C to stop the server")
    print("-" * 50)

    uvicorn.run(create_app(session), host=config.host, port=config.port,
                log_level=config.log_level.lower())


def main():
    print("🚀 CAPM Studio Web Interface")
    print("=" * 50)

    if not check_dependencies():
        sys.exit(1)

    config = StudioConfig.from_env()
    configure_logging(config.log_level, config.log_file)

    if not check_env(config):
        print("\n⚠️  Warning: No API key found. The interface will start but generation will fail.")
        response = input("\nContinue anyway? [y/N]: ").strip().lower()
        if response not in ['y', 'yes']:
            sys.exit(1)

    try:
        start_server(config)
    except KeyboardInterrupt:
        print("\n👋 Web interface stopped")


if __name__ == "__main__":
    main()
