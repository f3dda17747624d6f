# teastore/cli.py
import click
from flask.cli import with_appcontext
import pandas as pd
from werkzeug.security import generate_password_hash

from .extensions import db
from .model import User, Product
from .product.routes import slugify
from .utils.money import D, round_money

PRODUCT_COLUMNS = ["ID", "Name", "Slug", "Price", "Unit", "Tea Type", "Description", "Status", "Sort Order"]


@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", required=True)
@with_appcontext
def create_admin(email, password, name):
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        click.echo("Email already exists"); return
    u = User(email=email, name=name, password_hash=generate_password_hash(password), role="admin")
    db.session.add(u); db.session.commit()
    click.echo(f"Admin created: {u.id} {u.email}")


def _read_table(path: str) -> pd.DataFrame:
    if path.lower().endswith((".xlsx", ".xls")):
        df = pd.read_excel(path)
    else:
        df = pd.read_csv(path)
    df.columns = df.columns.str.strip()
    return df


@click.command("import-products")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def import_products(path):
    """Create or update catalog rows from a spreadsheet (matched by Slug)."""
    df = _read_table(path)
    missing = {"Name", "Price"} - set(df.columns)
    if missing:
        raise click.ClickException(f"missing columns: {', '.join(sorted(missing))}")

    created = updated = 0
    for _, row in df.iterrows():
        slug = row.get("Slug") if "Slug" in df.columns and pd.notna(row.get("Slug")) else None
        product = Product.query.filter_by(slug=slug).first() if slug else None
        if product is None:
            product = Product()
            db.session.add(product)
            created += 1
        else:
            updated += 1
        product.name = str(row["Name"]).strip()
        product.slug = slug or product.slug or slugify(product.name)
        product.price = round_money(D(row["Price"]))
        if "Unit" in df.columns and pd.notna(row.get("Unit")):
            product.unit = str(row["Unit"])
        if "Tea Type" in df.columns and pd.notna(row.get("Tea Type")):
            product.tea_type = str(row["Tea Type"])
        if "Description" in df.columns and pd.notna(row.get("Description")):
            product.description = str(row["Description"])
        if "Status" in df.columns and pd.notna(row.get("Status")):
            product.status = str(row["Status"]).strip().lower() in {"1", "1.0", "true", "yes", "y", "on"}
        if "Sort Order" in df.columns and pd.notna(row.get("Sort Order")):
            product.sort_order = int(row["Sort Order"])

    db.session.commit()
    click.echo(f"{created} products created, {updated} updated from {path}")


@click.command("export-products")
@click.argument("path", type=click.Path(dir_okay=False))
@with_appcontext
def export_products(path):
    rows = [{
        "ID": p.id,
        "Name": p.name,
        "Slug": p.slug,
        "Price": float(p.price or 0),
        "Unit": p.unit,
        "Tea Type": p.tea_type,
        "Description": p.description,
        "Status": bool(p.status),
        "Sort Order": p.sort_order,
    } for p in Product.query.order_by(Product.id.asc()).all()]
    df = pd.DataFrame(rows, columns=PRODUCT_COLUMNS)
    if path.lower().endswith(".xlsx"):
        df.to_excel(path, index=False)
    else:
        df.to_csv(path, index=False)
    click.echo(f"{len(df)} products exported to {path}")


def register_cli(app):
    app.cli.add_command(create_admin)
    app.cli.add_command(import_products)
    app.cli.add_command(export_products)
