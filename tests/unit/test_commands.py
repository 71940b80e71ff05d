import logging
from datetime import datetime, timedelta

from flask import Flask

from Controllers.claimController import create_claim
from Models.claimModel import Claim
from Models.itemModel import Item
from Utils.commands import SAMPLE_ITEMS, seed_items
from Utils.logger import setup_logging, summarize_log_dir


def test_seed_is_idempotent(app) -> None:
    assert seed_items() == len(SAMPLE_ITEMS)
    assert seed_items() == 0
    card = Item.objects.get(item_type="credit_card")
    assert card.extracted_info["cardNumber"] == "1234"


def test_seed_command(app) -> None:
    result = app.test_cli_runner().invoke(args=["items:seed"])
    assert "Seeded 3 item(s)." in result.output


def test_stale_claims_command(app, make_item, john_smith_answers) -> None:
    runner = app.test_cli_runner()
    assert "No pre-claimed claims" in runner.invoke(args=["claims:stale"]).output

    claim = create_claim(make_item(), john_smith_answers)
    Claim.objects(id=claim.id).update_one(set__claim_date=datetime.utcnow() - timedelta(days=4))

    output = runner.invoke(args=["claims:stale", "--hours", "72"]).output
    assert "1 claim(s) past the 72h pickup window" in output
    assert str(claim.id) in output


def test_setup_logging_writes_rotating_files(tmp_path) -> None:
    app = Flask(__name__)
    app.config["LOG_DIR"] = str(tmp_path)
    root = logging.getLogger()
    before = list(root.handlers)
    try:
        setup_logging(app)
        setup_logging(app)  # second call is a no-op
        logging.getLogger("Controllers.claimController").warning("claim rejected")
        logging.getLogger("payments").info("stk push sent")
        for handler in root.handlers + logging.getLogger("payments").handlers:
            handler.flush()

        app_log = (tmp_path / "app.log").read_text(encoding="utf-8")
        assert "[WARNING] in test_commands: claim rejected" in app_log
        assert "stk push sent" in (tmp_path / "payments.log").read_text(encoding="utf-8")

        summary = summarize_log_dir(str(tmp_path))
        today = datetime.now().strftime("%Y-%m-%d")
        assert summary[today]["WARNING"] >= 1

        result = app.test_cli_runner().invoke(args=["logs:summary", "--days", "1"])
        assert "Log Summary" in result.output
    finally:
        for name in ("", "access", "payments"):
            logger = logging.getLogger(name)
            for handler in list(logger.handlers):
                if handler not in before:
                    logger.removeHandler(handler)
                    handler.close()
