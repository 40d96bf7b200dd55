from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import banco_horas.validators


def horas(**kwargs):
    kwargs.setdefault("default", Decimal("0"))
    return models.DecimalField(decimal_places=2, max_digits=10, **kwargs)


def vigencia_fields():
    return [
        ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
        ('data_inicio', models.DateField()),
        ('data_fim', models.DateField(blank=True, null=True)),
        ('motivo', models.CharField(choices=[('renovacao', 'Renovação contratual'), ('renegociacao', 'Renegociação'), ('ajuste', 'Ajuste contratual'), ('correcao', 'Correção'), ('aditivo', 'Aditivo contratual'), ('reducao_escopo', 'Redução de escopo'), ('ampliacao_escopo', 'Ampliação de escopo'), ('outro', 'Outro')], default='outro', max_length=20)),
        ('observacao', models.TextField(blank=True)),
        ('created_at', models.DateTimeField(auto_now_add=True)),
        ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
    ]


def vigencia_constraints(nome):
    return [
        models.UniqueConstraint(condition=models.Q(('data_fim__isnull', True)), fields=('empresa',), name=f'{nome}_uma_aberta_por_empresa'),
        models.CheckConstraint(condition=models.Q(('data_fim__isnull', True), ('data_fim__gt', models.F('data_inicio')), _connector='OR'), name=f'{nome}_intervalo_valido'),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Empresa',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('nome_completo', models.CharField(max_length=200)),
                ('nome_abreviado', models.CharField(blank=True, max_length=60)),
                ('tipo_cobranca', models.CharField(choices=[('horas', 'Banco de horas'), ('tickets', 'Banco de tickets'), ('ambos', 'Horas e tickets')], default='horas', max_length=10)),
                ('baseline_horas_mensal', horas(validators=[banco_horas.validators.validate_horas_nao_negativas])),
                ('baseline_tickets_mensal', models.PositiveIntegerField(default=0)),
                ('percentual_repasse_mensal', models.DecimalField(decimal_places=2, default=Decimal('100'), max_digits=5, validators=[banco_horas.validators.validate_percentual])),
                ('periodo_apuracao', models.PositiveSmallIntegerField(default=12, validators=[banco_horas.validators.validate_periodo_apuracao])),
                ('inicio_vigencia', models.DateField(blank=True, null=True)),
                ('possui_repasse_especial', models.BooleanField(default=False)),
                ('ciclos_para_zerar', models.PositiveSmallIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('ativo', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['nome_completo'],
            },
        ),
        migrations.CreateModel(
            name='Apontamento',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('data_atividade', models.DateField()),
                ('horas', horas(validators=[banco_horas.validators.validate_horas_nao_negativas])),
                ('descricao', models.CharField(blank=True, max_length=255)),
                ('atividade_interna', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('empresa', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='apontamentos', to='banco_horas.empresa')),
            ],
            options={
                'ordering': ['-data_atividade'],
                'indexes': [models.Index(fields=['empresa', 'data_atividade'], name='banco_horas_empresa_apont_idx')],
            },
        ),
        migrations.CreateModel(
            name='Requerimento',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('descricao', models.CharField(max_length=255)),
                ('horas', horas(validators=[banco_horas.validators.validate_horas_nao_negativas])),
                ('tickets', models.PositiveIntegerField(default=0)),
                ('mes_cobranca', models.PositiveSmallIntegerField(blank=True, null=True, validators=[banco_horas.validators.validate_mes])),
                ('ano_cobranca', models.PositiveSmallIntegerField(blank=True, null=True, validators=[banco_horas.validators.validate_ano])),
                ('enviado', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('empresa', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='requerimentos', to='banco_horas.empresa')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['empresa', 'ano_cobranca', 'mes_cobranca', 'enviado'], name='banco_horas_empresa_req_idx')],
            },
        ),
        migrations.CreateModel(
            name='Calculo',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('mes', models.PositiveSmallIntegerField(validators=[banco_horas.validators.validate_mes])),
                ('ano', models.PositiveSmallIntegerField(validators=[banco_horas.validators.validate_ano])),
                ('baseline_aplicado', horas()),
                ('baseline_tickets', models.PositiveIntegerField(default=0)),
                ('repasse_mes_anterior', horas()),
                ('reajustes_horas', horas()),
                ('horas_consumidas', horas()),
                ('tickets_consumidos', models.PositiveIntegerField(default=0)),
                ('horas_em_desenvolvimento', horas()),
                ('tickets_em_desenvolvimento', models.PositiveIntegerField(default=0)),
                ('saldo', horas()),
                ('percentual_repasse', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ('repasse', horas()),
                ('excedente_horas', horas()),
                ('excedente_valor', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14)),
                ('taxa_utilizada', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('is_fim_periodo', models.BooleanField(default=False)),
                ('status', models.CharField(choices=[('sucesso', 'Sucesso'), ('erro', 'Erro')], default='sucesso', max_length=10)),
                ('mensagem_erro', models.TextField(blank=True)),
                ('versao', models.PositiveIntegerField(default=1)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('empresa', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='calculos', to='banco_horas.empresa')),
            ],
            options={
                'ordering': ['empresa', 'ano', 'mes'],
                'indexes': [models.Index(fields=['empresa', 'ano', 'mes'], name='banco_horas_calculo_mes_idx')],
                'constraints': [models.UniqueConstraint(fields=('empresa', 'mes', 'ano'), name='unique_calculo_empresa_mes_ano')],
            },
        ),
        migrations.CreateModel(
            name='Reajuste',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('mes', models.PositiveSmallIntegerField(validators=[banco_horas.validators.validate_mes])),
                ('ano', models.PositiveSmallIntegerField(validators=[banco_horas.validators.validate_ano])),
                ('valor', models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))])),
                ('tipo', models.CharField(choices=[('positivo', 'Positivo'), ('negativo', 'Negativo')], max_length=10)),
                ('observacao', models.TextField()),
                ('ativo', models.BooleanField(default=True)),
                ('desativado_em', models.DateTimeField(blank=True, null=True)),
                ('motivo_desativacao', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('empresa', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='reajustes', to='banco_horas.empresa')),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['empresa', 'ano', 'mes', 'ativo'], name='banco_horas_reajuste_idx')],
            },
        ),
        migrations.CreateModel(
            name='BaselineVigencia',
            fields=vigencia_fields() + [
                ('baseline_horas', horas(validators=[banco_horas.validators.validate_horas_nao_negativas])),
                ('baseline_tickets', models.PositiveIntegerField(default=0)),
                ('empresa', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='baselinevigencias', to='banco_horas.empresa')),
            ],
            options={
                'verbose_name': 'vigência de baseline',
                'verbose_name_plural': 'vigências de baseline',
                'ordering': ['empresa', 'data_inicio'],
                'abstract': False,
                'constraints': vigencia_constraints('baselinevigencia'),
            },
        ),
        migrations.CreateModel(
            name='RepasseVigencia',
            fields=vigencia_fields() + [
                ('percentual', models.DecimalField(decimal_places=2, max_digits=5, validators=[banco_horas.validators.validate_percentual])),
                ('empresa', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='repassevigencias', to='banco_horas.empresa')),
            ],
            options={
                'verbose_name': 'vigência de repasse',
                'verbose_name_plural': 'vigências de repasse',
                'ordering': ['empresa', 'data_inicio'],
                'abstract': False,
                'constraints': vigencia_constraints('repassevigencia'),
            },
        ),
        migrations.CreateModel(
            name='TaxaVigencia',
            fields=vigencia_fields() + [
                ('valor_hora', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ('valor_ticket', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ('empresa', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='taxavigencias', to='banco_horas.empresa')),
            ],
            options={
                'verbose_name': 'vigência de taxa',
                'verbose_name_plural': 'vigências de taxa',
                'ordering': ['empresa', 'data_inicio'],
                'abstract': False,
                'constraints': vigencia_constraints('taxavigencia'),
            },
        ),
        migrations.CreateModel(
            name='Versao',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('mes', models.PositiveSmallIntegerField(validators=[banco_horas.validators.validate_mes])),
                ('ano', models.PositiveSmallIntegerField(validators=[banco_horas.validators.validate_ano])),
                ('numero', models.PositiveIntegerField()),
                ('dados', models.JSONField()),
                ('motivo', models.CharField(blank=True, max_length=255)),
                ('tipo_mudanca', models.CharField(choices=[('recalculo', 'Recálculo'), ('reajuste', 'Reajuste'), ('correcao', 'Correção')], default='recalculo', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('calculo', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='versoes', to='banco_horas.calculo')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('empresa', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='versoes', to='banco_horas.empresa')),
            ],
            options={
                'ordering': ['-created_at', '-numero'],
                'indexes': [models.Index(fields=['empresa', 'ano', 'mes'], name='banco_horas_versao_mes_idx')],
                'constraints': [models.UniqueConstraint(fields=('calculo', 'numero'), name='unique_versao_calculo_numero')],
            },
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('acao', models.CharField(choices=[('reajuste_criado', 'Reajuste criado'), ('reajuste_desativado', 'Reajuste desativado'), ('vigencia_criada', 'Vigência criada')], max_length=30)),
                ('descricao', models.TextField()),
                ('dados', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('calculo', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='audit_logs', to='banco_horas.calculo')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('empresa', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='audit_logs', to='banco_horas.empresa')),
            ],
            options={
                'ordering': ['-created_at', '-id'],
            },
        ),
    ]
