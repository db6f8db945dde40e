import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from assistants.exceptions import NotFound
from assistants.portability import export_configuration


class Command(BaseCommand):
    help = "Export a configuration as a portable JSON document (secrets masked)."

    def add_arguments(self, parser):
        parser.add_argument("configuration_id", type=int)
        parser.add_argument("--output", default="", help="Write the document to this file instead of stdout.")

    def handle(self, *args, **options):
        try:
            document = export_configuration(options["configuration_id"])
        except NotFound as exc:
            raise CommandError(str(exc)) from exc
        payload = json.dumps(document, indent=2, default=str)
        output = options["output"]
        if output:
            Path(output).write_text(payload + "\n", encoding="utf-8")
            self.stdout.write(self.style.SUCCESS(f"Wrote {output}"))
            return
        self.stdout.write(payload)
