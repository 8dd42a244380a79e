from __future__ import annotations
import os
from app import create_app
from app.extensions import db


def main() -> None:
    flask_app = create_app()

    with flask_app.app_context():
        db.create_all()

    for rule in sorted(flask_app.url_map.iter_rules(), key=lambda r: r.rule):
        flask_app.logger.debug("route %s %s", ",".join(sorted(rule.methods - {"HEAD", "OPTIONS"})), rule.rule)
    flask_app.logger.info(
        "SlowDay Deals API on port %s (notifications %s, slot release on cancel %s)",
        os.environ.get("PORT", 5000),
        "on" if flask_app.config["NOTIFICATIONS_ENABLED"] else "off",
        "on" if flask_app.config["RELEASE_SLOTS_ON_CANCEL"] else "off",
    )

    debug_enabled = os.environ.get("FLASK_DEBUG", "0") in {"1", "true", "True"}
    flask_app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)), debug=debug_enabled)


if __name__ == "__main__":
    main()
