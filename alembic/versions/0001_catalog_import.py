from alembic import op
import sqlalchemy as sa

revision = "0001_catalog_import"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "produtos_cvh",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("codbarra", sa.String(length=64), nullable=False),
        sa.Column("item_code", sa.String(length=64), nullable=False, server_default=""),  # display only, not unique
        sa.Column("descricao", sa.Text(), nullable=False),
        sa.Column("descricao_curta", sa.Text(), nullable=True),
        sa.Column("cod_categoria", sa.String(length=64), nullable=True),
        sa.Column("descricao_categoria", sa.Text(), nullable=True),
        sa.Column("cod_grupo", sa.String(length=64), nullable=True),
        sa.Column("descricao_grupo", sa.Text(), nullable=True),
        sa.Column("data_cadastro", sa.Date(), nullable=True),
        sa.Column("ncm", sa.String(length=32), nullable=True),
        sa.Column("class_cond", sa.String(length=64), nullable=True),
        sa.Column("grupo_com", sa.String(length=64), nullable=True),
        sa.Column("grupo_log", sa.String(length=64), nullable=True),
        sa.Column("cst_sp", sa.String(length=32), nullable=True),
        sa.Column("peso", sa.Float(), nullable=True),
        sa.Column("cpc", sa.String(length=64), nullable=True),
        sa.Column("epc", sa.String(length=64), nullable=True),
        sa.Column("upc", sa.String(length=64), nullable=True),
        sa.Column("cor", sa.String(length=64), nullable=True),
        sa.Column("foto", sa.Text(), nullable=True),
        sa.Column("preco_unitario", sa.Float(), nullable=False, server_default="0"),
        sa.Column("unidade_medida", sa.String(length=16), nullable=False, server_default=""),
        sa.Column("importacao_id", sa.String(), nullable=True),
        sa.Column("lastupdatedate", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("codbarra", name="uq_produtos_cvh_codbarra"),
    )
    op.create_index("ix_produtos_cvh_item_code", "produtos_cvh", ["item_code"], unique=False)

    op.create_table(
        "importacoes_cvh",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("nome_arquivo", sa.String(length=255), nullable=False),
        sa.Column("arquivo_path", sa.String(length=500), nullable=False),
        sa.Column("total_linhas", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("novos", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("alterados", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=16), nullable=False),  # pending|completed|failed
        sa.Column("usuario_id", sa.String(), nullable=True),
        sa.Column("diff_preview", sa.JSON(), nullable=False, server_default=sa.text("'{}'::json")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_importacoes_cvh_created", "importacoes_cvh", ["created_at"], unique=False)

    op.create_table(
        "historico_produtos_cvh",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("importacao_id", sa.String(), sa.ForeignKey("importacoes_cvh.id", ondelete="SET NULL"), nullable=True),
        sa.Column("usuario_id", sa.String(), nullable=True),
        sa.Column("codbarra", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("item_code", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("dados_anteriores", sa.JSON(), nullable=True),
        sa.Column("dados_novos", sa.JSON(), nullable=True),
        sa.Column("tipo_operacao", sa.String(length=40), nullable=False),  # insercao|alteracao|importacao
        sa.Column("status", sa.String(length=16), nullable=False),  # sucesso|erro
        sa.Column("mensagem_erro", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False, server_default=sa.text("'{}'::json")),
        sa.Column("data_alteracao", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_historico_cvh_importacao", "historico_produtos_cvh", ["importacao_id"], unique=False)
    op.create_index("ix_historico_cvh_codbarra", "historico_produtos_cvh", ["codbarra"], unique=False)


def downgrade():
    op.drop_index("ix_historico_cvh_codbarra", table_name="historico_produtos_cvh")
    op.drop_index("ix_historico_cvh_importacao", table_name="historico_produtos_cvh")
    op.drop_table("historico_produtos_cvh")

    op.drop_index("ix_importacoes_cvh_created", table_name="importacoes_cvh")
    op.drop_table("importacoes_cvh")

    op.drop_index("ix_produtos_cvh_item_code", table_name="produtos_cvh")
    op.drop_table("produtos_cvh")
