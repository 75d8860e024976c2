"""Interface en ligne de commande relmatch."""

from __future__ import annotations

import argparse
import logging
import sys

from relmatch import __version__
from relmatch.config import Config, RelMatchError
from relmatch.io_excel import import_table, list_sheets, save_spreadsheet
from relmatch.matching.engine import match_relations
from relmatch.matching.options import MatchSpecification
from relmatch.report import build_report_df, print_report_console
from relmatch.store import SQLiteStore

logger = logging.getLogger(__name__)


def cmd_list_sheets(filepath: str) -> int:
    """Liste les feuilles d'un fichier tableur."""
    sheets = list_sheets(filepath)
    print(f"Feuilles dans {filepath}:")
    for s in sheets:
        print(f"  - {s}")
    return 0


def cmd_run(
    config_path: str,
    output_path: str | None,
    *,
    dry_run: bool = False,
) -> int:
    """Importe les deux tables, exécute le match et exporte les résultats."""
    config = Config.load(config_path)
    spec = MatchSpecification.build(
        config.left_attributes,
        config.right_attributes,
        options=config.options,
        with_clause=config.with_clause,
    )

    if not dry_run and not output_path and not config.database:
        print("Erreur: --output requis sans base persistante (clé 'database').")
        return 1

    with SQLiteStore(config.database or ":memory:") as store:
        left = import_table(store, config.left)
        right = import_table(store, config.right)
        outcome = match_relations(store, spec, left, right, config.target, config.engine)

        print_report_console(outcome)

        if dry_run:
            print("Mode dry-run: pas d'écriture du fichier de sortie.")
            return 0

        if output_path:
            sheets = {
                "EXACT": store.read_relation(outcome.exact_relation),
                "FUZZY": store.read_relation(outcome.fuzzy_relation),
                "REPORT": build_report_df(outcome, spec, config.engine),
            }
            for path in save_spreadsheet(output_path, sheets):
                print(f"Fichier de sortie: {path}")
        else:
            print(f"Résultats dans {config.database}: {outcome.exact_relation}, {outcome.fuzzy_relation}")

    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="relmatch",
        description="Appariement exact puis fuzzy de deux tables (Jaro, Jaro-Winkler, Dice)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Journalisation détaillée")

    subparsers = parser.add_subparsers(dest="command", help="Commandes")

    # list-sheets
    p_list = subparsers.add_parser("list-sheets", help="Lister les feuilles d'un tableur")
    p_list.add_argument("file", help="Fichier xlsx, xls, ods ou csv")

    # run
    p_run = subparsers.add_parser("run", help="Exécuter le match")
    p_run.add_argument("--config", "-c", required=True, help="Fichier config JSON")
    p_run.add_argument("--output", "-o", help="Fichier de sortie (.xlsx, .ods ou .csv)")
    p_run.add_argument("--dry-run", action="store_true", help="Ne pas écrire le fichier de sortie")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        if args.command == "list-sheets":
            return cmd_list_sheets(args.file)

        if args.command == "run":
            return cmd_run(args.config, args.output, dry_run=args.dry_run)
    except RelMatchError as e:
        logger.debug("Échec de la commande", exc_info=True)
        print(f"Erreur: {e}")
        return 1

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
