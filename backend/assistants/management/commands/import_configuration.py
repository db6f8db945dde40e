import json
from pathlib import Path

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from assistants.exceptions import BadRequest
from assistants.portability import import_configuration


class Command(BaseCommand):
    help = "Import a portable configuration document as a new configuration."

    def add_arguments(self, parser):
        parser.add_argument("path")
        parser.add_argument("--actor", default="", help="Username recorded as the author of the import.")

    def handle(self, *args, **options):
        path = Path(options["path"])
        if not path.exists():
            raise CommandError(f"File not found: {path}")
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise CommandError(f"{path} is not valid JSON: {exc}") from exc
        actor = None
        if options["actor"]:
            actor = get_user_model().objects.filter(username=options["actor"]).first()
            if actor is None:
                raise CommandError(f"User not found: {options['actor']}")
        try:
            configuration = import_configuration(document, actor)
        except BadRequest as exc:
            details = "\n".join(f"  {error}" for error in exc.errors)
            raise CommandError(f"{exc}\n{details}" if details else str(exc)) from exc
        self.stdout.write(self.style.SUCCESS(f"Imported configuration {configuration.id}"))
