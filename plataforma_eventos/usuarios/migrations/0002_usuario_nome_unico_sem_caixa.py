from django.db import migrations, models
import django.db.models.functions.text


def normalizar_nomes(apps, schema_editor):
    Usuario = apps.get_model('usuarios', 'Usuario')
    for perfil in Usuario.objects.filter(nome__contains='_'):
        perfil.nome = ' '.join(perfil.nome.replace('_', ' ').split())
        perfil.save(update_fields=['nome'])


class Migration(migrations.Migration):

    dependencies = [
        ('usuarios', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(normalizar_nomes, migrations.RunPython.noop),
        migrations.AddConstraint(
            model_name='usuario',
            constraint=models.UniqueConstraint(django.db.models.functions.text.Lower('nome'), name='usuario_nome_unico_sem_caixa'),
        ),
    ]
