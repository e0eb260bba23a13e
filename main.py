# imports from flask
import os

from dotenv import load_dotenv

from socketio_handlers.socket_server import create_app

# Load environment variables
load_dotenv()

app, socketio = create_app()


# this runs the flask application on the development server
if __name__ == "__main__":
    host = "0.0.0.0"
    port = int(os.getenv('FLASK_PORT', 8500))
    settings = app.config['ARENA_SETTINGS']
    print(f"\n{'='*60}")
    print(f"🔌 Arena server running: http://localhost:{port}")
    print(f"📡 Lobby API: http://localhost:{port}/api/arena/rooms")
    print(f"🎮 Tick rate: {settings.tick_rate} Hz, start delay: {settings.start_delay}s")
    print(f"{'='*60}\n")
    socketio.run(app, debug=True, host=host, port=port, use_reloader=False, allow_unsafe_werkzeug=True)
