from campus_events.main import app
import os

if __name__ == "__main__":
    # Importing campus_events.main creates the data and log directories. The
    # hosting environment may provide PORT; default to 8080 for local runs.
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port)
