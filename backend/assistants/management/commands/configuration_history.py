import json

from django.core.management.base import BaseCommand, CommandError

from assistants.exceptions import AssistantsError
from assistants.history import get_history, get_recent_changes
from assistants.serializers import ConfigurationHistorySummarySerializer


class Command(BaseCommand):
    help = "Print the version history of a configuration, or the most recent changes."

    def add_arguments(self, parser):
        parser.add_argument("configuration_id", nargs="?", type=int)
        parser.add_argument("--recent", type=int, default=None, help="Show the N most recent changes.")

    def handle(self, *args, **options):
        configuration_id = options["configuration_id"]
        recent = options["recent"]
        if (configuration_id is None) == (recent is None):
            raise CommandError("Pass either a configuration id or --recent N.")
        try:
            if recent is not None:
                entries = get_recent_changes(recent)
            else:
                entries = get_history(configuration_id)
        except AssistantsError as exc:
            raise CommandError(str(exc)) from exc
        data = ConfigurationHistorySummarySerializer(entries, many=True).data
        self.stdout.write(json.dumps(data, indent=2, default=str))
