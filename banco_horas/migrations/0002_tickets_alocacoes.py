from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import banco_horas.validators


class Migration(migrations.Migration):

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('banco_horas', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='calculo',
            name='reajustes_tickets',
            field=models.IntegerField(default=0),
        ),
        migrations.AddField(
            model_name='calculo',
            name='repasse_tickets_mes_anterior',
            field=models.IntegerField(default=0),
        ),
        migrations.AddField(
            model_name='calculo',
            name='saldo_tickets',
            field=models.IntegerField(default=0),
        ),
        migrations.AddField(
            model_name='calculo',
            name='repasse_tickets',
            field=models.IntegerField(default=0),
        ),
        migrations.AddField(
            model_name='calculo',
            name='excedente_tickets',
            field=models.PositiveIntegerField(default=0),
        ),
        migrations.AddField(
            model_name='calculo',
            name='excedente_tickets_valor',
            field=models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14),
        ),
        migrations.AddField(
            model_name='calculo',
            name='taxa_ticket_utilizada',
            field=models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True),
        ),
        migrations.AddField(
            model_name='reajuste',
            name='dimensao',
            field=models.CharField(choices=[('horas', 'Horas'), ('tickets', 'Tickets')], default='horas', max_length=10),
        ),
        migrations.CreateModel(
            name='Alocacao',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('nome', models.CharField(max_length=100)),
                ('percentual_baseline', models.DecimalField(decimal_places=2, max_digits=5, validators=[banco_horas.validators.validate_percentual])),
                ('ativo', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('empresa', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='alocacoes', to='banco_horas.empresa')),
            ],
            options={
                'verbose_name': 'alocação',
                'verbose_name_plural': 'alocações',
                'ordering': ['empresa', 'nome'],
                'constraints': [models.UniqueConstraint(condition=models.Q(('ativo', True)), fields=('empresa', 'nome'), name='unique_alocacao_ativa_por_nome')],
            },
        ),
    ]
