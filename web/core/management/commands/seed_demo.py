from django.core.management.base import BaseCommand
from django.utils import timezone

from accounts.models import User
from core.models import Discipline, ErrorEntry, Subdiscipline, Topic

CURRICULUM = {
    'Clínica Médica': {
        'Cardiologia': ['Insuficiência cardíaca', 'Síndromes coronarianas agudas', 'Fibrilação atrial'],
        'Endocrinologia': ['Diabetes mellitus', 'Tireoide', 'Adrenal'],
    },
    'Cirurgia': {
        'Trauma': ['ATLS', 'Trauma abdominal', 'Queimaduras'],
        'Abdome agudo': ['Apendicite', 'Colecistite', 'Obstrução intestinal'],
    },
    'Pediatria': {
        'Neonatologia': ['Reanimação neonatal', 'Icterícia neonatal'],
        'Infectologia pediátrica': ['Doenças exantemáticas', 'Calendário vacinal'],
    },
}


class Command(BaseCommand):
    help = 'Create reference disciplines and topics plus a demo user with starter error entries.'

    def handle(self, *args, **options):
        created_topics = 0
        for discipline_name, subdisciplines in CURRICULUM.items():
            discipline, _ = Discipline.objects.get_or_create(name=discipline_name)
            for sub_name, topics in subdisciplines.items():
                subdiscipline, _ = Subdiscipline.objects.get_or_create(discipline=discipline, name=sub_name)
                for topic_name in topics:
                    _, created = Topic.objects.get_or_create(subdiscipline=subdiscipline, name=topic_name)
                    created_topics += int(created)
        self.stdout.write(self.style.SUCCESS(f'Seeded {created_topics} new topics.'))

        user, created = User.objects.get_or_create(
            email='demo@example.com',
            defaults={'created_at': timezone.now()},
        )
        if created or not user.password:
            user.set_password('demo1234')
            user.is_staff = True
            user.save()
            self.stdout.write(self.style.SUCCESS('Created demo user demo@example.com / demo1234'))
        else:
            self.stdout.write('Demo user already exists.')

        samples = [
            ('Cardiologia', 'Primeira droga na FA com instabilidade hemodinâmica?', 'Cardioversão elétrica sincronizada'),
            ('Trauma', 'Primeiro passo do ABCDE?', 'Via aérea com proteção da coluna cervical'),
            ('Neonatologia', 'FC abaixo de quanto indica VPP na reanimação neonatal?', '100 bpm'),
        ]
        created_entries = 0
        for sub_name, question, answer in samples:
            subdiscipline = Subdiscipline.objects.get(name=sub_name)
            _, created_entry = ErrorEntry.objects.get_or_create(
                user=user,
                question_text=question,
                defaults={
                    'answer_text': answer,
                    'discipline': subdiscipline.discipline,
                    'topic': subdiscipline.topics.first(),
                },
            )
            created_entries += int(created_entry)
        self.stdout.write(self.style.SUCCESS(f'Seeded {created_entries} new error entries.'))
