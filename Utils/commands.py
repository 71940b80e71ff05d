from datetime import datetime
import click
from flask.cli import with_appcontext

SAMPLE_ITEMS = [
    {
        "item_type": "id_card",
        "item_name": "National ID Card",
        "description": "Found a national ID card near Central Park",
        "found_date": "2025-04-08",
        "location": "Central Park, New York",
        "extracted_info": {"name": "John Smith", "idNumber": "ID123456", "dateOfBirth": "1990-05-15"},
        "contact_info": "Lost and Found Office, Central Park",
    },
    {
        "item_type": "credit_card",
        "item_name": "Visa Credit Card",
        "description": "Found a Visa credit card at Starbucks",
        "found_date": "2025-04-07",
        "location": "Starbucks, 5th Avenue, New York",
        "extracted_info": {"name": "Jane Doe", "cardNumber": "XXXX-XXXX-XXXX-1234"},
        "contact_info": "Starbucks Manager, 5th Avenue",
        "phone_number": "0712345678",
        "suggested_pickup_locations": ["Starbucks, 5th Avenue", "Midtown Police Station"],
    },
    {
        "item_type": "phone",
        "item_name": "iPhone 15",
        "description": "Found an iPhone 15 on the subway",
        "found_date": "2025-04-06",
        "location": "Subway Line A, 14th Street Station",
        "extracted_info": {"phoneNumber": "XXX-XXX-1234"},
        "contact_info": "Subway Lost and Found Office",
    },
]


def seed_items(samples=SAMPLE_ITEMS):
    """Insert sample items whose name is not already listed. Returns the count added."""
    from Models.itemModel import Item
    from Utils.itemCache import item_cache

    added = 0
    for sample in samples:
        if Item.objects(item_name=sample["item_name"]).first():
            continue
        data = dict(sample)
        data["found_date"] = datetime.fromisoformat(data["found_date"])
        Item(**data).save()
        added += 1
    if added:
        item_cache.invalidate()
    return added


def register_commands(app):
    """Adds 'flask items:seed' and 'flask claims:stale'."""

    @click.command("items:seed")
    @with_appcontext
    def seed_command():
        added = seed_items()
        click.echo(f"Seeded {added} item(s).")

    @click.command("claims:stale")
    @with_appcontext
    @click.option("--hours", default=72, help="Pickup window in hours")
    def stale_claims_command(hours):
        from Controllers.claimController import find_stale_claims

        stale = find_stale_claims(hours=hours)
        if not stale:
            click.echo(f"No pre-claimed claims older than {hours}h.")
            return
        click.echo(f"{len(stale)} claim(s) past the {hours}h pickup window:")
        for claim in stale:
            click.echo(f"  {claim.id}  item={claim.item.id}  claimed_on={claim.claim_date:%Y-%m-%d %H:%M}")

    app.cli.add_command(seed_command)
    app.cli.add_command(stale_claims_command)
