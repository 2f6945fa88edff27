"""The source HTML pipeline and the asset pipelines it drives."""